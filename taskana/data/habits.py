"""
Taskana — Habit Definitions.

Habits are recurring commitments defined as JSON files (one per habit) in
HABITS_DIR. They are read-only at runtime: the bot records check-ins in the
day log but never edits the definitions.

JSON example (data/habits/quran-reading.json):
{
    "id": "quran-reading",
    "name": "قراءة القرآن",
    "schedule": {"days": ["sat", "sun", "mon"], "timeSlot": "after_fajr", "durationMinutes": 30},
    "reminders": {"atStart": true, "beforeEnd": true, "beforeEndMinutes": 5},
    "requiresJustification": true
}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from taskana.data.models import DAYS_OF_WEEK, TimeSlot

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HabitSchedule(_CamelModel):
    days: list[str] = Field(min_length=1)
    time_slot: TimeSlot
    duration_minutes: int = Field(gt=0)

    @field_validator("days")
    @classmethod
    def check_days(cls, v: list[str]) -> list[str]:
        days = [d.strip().lower() for d in v]
        invalid = [d for d in days if d not in DAYS_OF_WEEK]
        if invalid:
            raise ValueError(f"unknown day(s): {', '.join(invalid)}")
        return days


class HabitReminders(_CamelModel):
    at_start: bool = True
    before_end: bool = True
    before_end_minutes: int = Field(default=5, gt=0)


class Habit(_CamelModel):
    """A recurring habit definition."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str | None = None
    schedule: HabitSchedule
    reminders: HabitReminders = Field(default_factory=HabitReminders)
    requires_justification: bool = True


def validate_habit(data: object, filename: str | None = None) -> Habit:
    """Validate a habit dict, raising ValueError with a readable summary."""
    try:
        return Habit.model_validate(data)
    except ValidationError as exc:
        errors = "\n".join(
            f"  - {'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        source = f" in {filename}" if filename else ""
        raise ValueError(f"Invalid habit definition{source}:\n{errors}") from exc


class HabitRegistry:
    """In-memory index of habit definitions loaded from a directory."""

    def __init__(self, habits_dir: str | None = None) -> None:
        if habits_dir is None:
            from taskana.config import settings
            habits_dir = settings.HABITS_DIR

        self._habits_dir = Path(habits_dir)
        self._habits: dict[str, Habit] = {}

    def load_all(self) -> list[Habit]:
        """(Re)load every *.json file in the habits directory.

        A missing directory yields no habits; an invalid file raises.
        """
        if not self._habits_dir.is_dir():
            logger.warning("Habits directory not found: %s", self._habits_dir.resolve())
            self._habits = {}
            return []

        loaded: dict[str, Habit] = {}
        for path in sorted(self._habits_dir.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in {path.name}: {exc}") from exc
            habit = validate_habit(data, path.name)
            loaded[habit.id] = habit

        if not loaded:
            logger.warning("No habit files found in %s", self._habits_dir.resolve())

        self._habits = loaded
        logger.info("Loaded %d habits from %s", len(loaded), self._habits_dir.resolve())
        return list(loaded.values())

    def add(self, habit: Habit) -> None:
        """Register a habit directly (used by tests and tooling)."""
        self._habits[habit.id] = habit

    def get_all(self) -> list[Habit]:
        return list(self._habits.values())

    def get_by_id(self, habit_id: str) -> Habit | None:
        return self._habits.get(habit_id)

    def find(self, reference: str) -> Habit | None:
        """Look a habit up by ID, falling back to a case-insensitive name match."""
        habit = self.get_by_id(reference)
        if habit is not None:
            return habit
        wanted = reference.strip().lower()
        for candidate in self._habits.values():
            if candidate.name.strip().lower() == wanted:
                return candidate
        return None

    def get_for_day(self, day: str) -> list[Habit]:
        """Habits scheduled on a weekday key ("mon" … "sun")."""
        return [h for h in self._habits.values() if day in h.schedule.days]

    def get_for_day_and_slot(self, day: str, slot: TimeSlot) -> list[Habit]:
        return [
            h for h in self._habits.values()
            if day in h.schedule.days and h.schedule.time_slot == slot
        ]
