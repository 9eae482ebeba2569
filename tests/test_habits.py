"""Tests for taskana.data.habits — habit definitions and the registry."""

import json
from pathlib import Path

import pytest

from taskana.data.habits import HabitRegistry, validate_habit
from taskana.data.models import TimeSlot


def _write(directory, name, data):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / name).write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


VALID = {
    "id": "quran-reading",
    "name": "قراءة القرآن",
    "schedule": {"days": ["sat", "sun", "mon"], "timeSlot": "after_fajr", "durationMinutes": 30},
    "reminders": {"atStart": True, "beforeEnd": True, "beforeEndMinutes": 5},
    "requiresJustification": True,
}


class TestValidateHabit:
    def test_valid(self):
        habit = validate_habit(VALID)
        assert habit.id == "quran-reading"
        assert habit.schedule.time_slot == TimeSlot.AFTER_FAJR
        assert habit.schedule.days == ["sat", "sun", "mon"]
        assert habit.reminders.before_end_minutes == 5

    def test_defaults(self):
        data = {k: v for k, v in VALID.items() if k not in ("reminders", "requiresJustification")}
        habit = validate_habit(data)
        assert habit.requires_justification is True
        assert habit.reminders.at_start is True

    def test_days_normalized(self):
        data = dict(VALID, schedule=dict(VALID["schedule"], days=[" MON ", "Tue"]))
        assert validate_habit(data).schedule.days == ["mon", "tue"]

    def test_unknown_day(self):
        data = dict(VALID, schedule=dict(VALID["schedule"], days=["funday"]))
        with pytest.raises(ValueError, match="funday"):
            validate_habit(data)

    def test_bad_slot_names_file(self):
        data = dict(VALID, schedule=dict(VALID["schedule"], timeSlot="noon"))
        with pytest.raises(ValueError, match="bad.json"):
            validate_habit(data, "bad.json")

    def test_missing_name(self):
        data = {k: v for k, v in VALID.items() if k != "name"}
        with pytest.raises(ValueError, match="name"):
            validate_habit(data)


class TestHabitRegistry:
    def test_load_all(self, tmp_path):
        habits_dir = tmp_path / "habits"
        _write(habits_dir, "quran.json", VALID)
        _write(habits_dir, "gym.json", dict(
            VALID, id="gym", name="Gym",
            schedule={"days": ["tue"], "timeSlot": "after_maghrib", "durationMinutes": 60},
        ))
        registry = HabitRegistry(habits_dir=str(habits_dir))
        loaded = registry.load_all()
        assert {h.id for h in loaded} == {"quran-reading", "gym"}

    def test_missing_directory(self, habit_registry):
        assert habit_registry.load_all() == []
        assert habit_registry.get_all() == []

    def test_invalid_json_raises(self, tmp_path):
        habits_dir = tmp_path / "habits"
        habits_dir.mkdir()
        (habits_dir / "broken.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="broken.json"):
            HabitRegistry(habits_dir=str(habits_dir)).load_all()

    def test_invalid_definition_raises(self, tmp_path):
        _write(tmp_path / "habits", "bad.json", {"id": "x"})
        with pytest.raises(ValueError, match="bad.json"):
            HabitRegistry(habits_dir=str(tmp_path / "habits")).load_all()

    def test_find_by_id_or_name(self, habit_registry, make_habit):
        habit_registry.add(make_habit("quran", "قراءة القرآن"))
        habit_registry.add(make_habit("gym", "Gym"))
        assert habit_registry.find("quran").id == "quran"
        assert habit_registry.find(" gym ").id == "gym"
        assert habit_registry.find("GYM").id == "gym"
        assert habit_registry.find("swimming") is None

    def test_filters(self, habit_registry, make_habit):
        habit_registry.add(make_habit("quran", days=["mon"], time_slot="after_fajr"))
        habit_registry.add(make_habit("gym", "Gym", days=["mon", "tue"], time_slot="after_maghrib"))
        assert [h.id for h in habit_registry.get_for_day("tue")] == ["gym"]
        assert [h.id for h in habit_registry.get_for_day_and_slot("mon", TimeSlot.AFTER_MAGHRIB)] == ["gym"]
        assert habit_registry.get_by_id("nope") is None


class TestBundledHabits:
    def test_sample_definitions_load(self):
        habits_dir = Path(__file__).resolve().parent.parent / "data" / "habits"
        habits = HabitRegistry(habits_dir=str(habits_dir)).load_all()
        assert [h.id for h in habits] == ["quran-reading"]
        assert habits[0].schedule.time_slot == TimeSlot.AFTER_FAJR
