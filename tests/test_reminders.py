"""Tests for taskana.core.reminders — planning and sending habit reminders."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from unittest.mock import AsyncMock, MagicMock

from taskana.core import messages
from taskana.core.reminders import BEFORE_END, START, HabitReminderService, Reminder
from taskana.core.schedule import PrayerSchedule
from taskana.data.habits import Habit
from taskana.ports.messaging_port import SentMessage

CAIRO = ZoneInfo("Africa/Cairo")
TIMES = {
    "fajr": "04:45",
    "dhuhr": "11:55",
    "asr": "15:10",
    "maghrib": "17:45",
    "isha": "19:05",
}


def _habit(habit_id, time_slot, duration=30, days=None, **reminders):
    return Habit.model_validate({
        "id": habit_id,
        "name": habit_id.title(),
        "schedule": {
            "days": days or ["mon"],
            "timeSlot": time_slot,
            "durationMinutes": duration,
        },
        "reminders": {"atStart": True, "beforeEnd": True, "beforeEndMinutes": 5, **reminders},
    })


def _at(hour, minute=0):
    # 2026-02-16 is a Monday
    return datetime(2026, 2, 16, hour, minute, tzinfo=CAIRO)


@pytest.fixture
def schedule():
    return PrayerSchedule(prayer_times=TIMES, timezone="Africa/Cairo", before_offset_minutes=30)


@pytest.fixture
def messenger():
    m = MagicMock()
    m.send_text = AsyncMock(return_value=SentMessage(success=True, message_id="1"))
    return m


def _service(habit_registry, schedule, messenger, recipients=(111,)):
    return HabitReminderService(habit_registry, schedule, messenger, recipients=list(recipients))


class TestPlan:
    def test_start_and_before_end(self, habit_registry, schedule, messenger):
        habit_registry.add(_habit("quran", "after_fajr", duration=30))
        planned = _service(habit_registry, schedule, messenger).plan(now=_at(0, 5))

        assert [(r.kind, r.at) for r in planned] == [
            (START, _at(4, 45)),
            (BEFORE_END, _at(5, 10)),
        ]
        assert planned[1].minutes_left == 5

    def test_window_cut_at_slot_end(self, habit_registry, schedule, messenger):
        # before_asr runs 14:40-15:10, so a 60-minute habit still ends at 15:10
        habit_registry.add(_habit("walk", "before_asr", duration=60))
        planned = _service(habit_registry, schedule, messenger).plan(now=_at(0, 5))
        assert [r.at for r in planned] == [_at(14, 40), _at(15, 5)]

    def test_past_reminders_skipped(self, habit_registry, schedule, messenger):
        habit_registry.add(_habit("quran", "after_fajr", duration=30))
        planned = _service(habit_registry, schedule, messenger).plan(now=_at(5, 0))
        assert [r.kind for r in planned] == [BEFORE_END]

    def test_only_todays_habits(self, habit_registry, schedule, messenger):
        habit_registry.add(_habit("gym", "after_maghrib", days=["tue"]))
        assert _service(habit_registry, schedule, messenger).plan(now=_at(0, 5)) == []

    def test_disabled_reminders(self, habit_registry, schedule, messenger):
        habit_registry.add(_habit("quran", "after_fajr", atStart=False, beforeEnd=False))
        assert _service(habit_registry, schedule, messenger).plan(now=_at(0, 5)) == []

    def test_before_end_not_earlier_than_start(self, habit_registry, schedule, messenger):
        habit_registry.add(_habit("short", "after_fajr", duration=5, beforeEndMinutes=10))
        planned = _service(habit_registry, schedule, messenger).plan(now=_at(0, 5))
        assert [r.kind for r in planned] == [START]

    def test_sorted_by_time(self, habit_registry, schedule, messenger):
        habit_registry.add(_habit("gym", "after_maghrib"))
        habit_registry.add(_habit("quran", "after_fajr"))
        planned = _service(habit_registry, schedule, messenger).plan(now=_at(0, 5))
        assert [r.at for r in planned] == sorted(r.at for r in planned)
        assert planned[0].habit_id == "quran"


class TestReminderText:
    def test_start(self):
        r = Reminder("quran", "قراءة القرآن", START, _at(4, 45))
        assert r.text == messages.habit_reminder_start("قراءة القرآن")

    def test_before_end(self):
        r = Reminder("quran", "قراءة القرآن", BEFORE_END, _at(5, 10), minutes_left=5)
        assert r.text == messages.habit_reminder_end("قراءة القرآن", 5)
        assert "5" in r.text


class TestSend:
    @pytest.mark.asyncio
    async def test_sends_to_every_recipient(self, habit_registry, schedule, messenger):
        service = _service(habit_registry, schedule, messenger, recipients=(111, 222))
        reminder = Reminder("quran", "Quran", START, _at(4, 45))

        assert await service.send(reminder) == 2
        sent_to = [c.args[0] for c in messenger.send_text.await_args_list]
        assert sent_to == ["111", "222"]
        assert messenger.send_text.await_args.args[1] == reminder.text

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_others(self, habit_registry, schedule, messenger):
        messenger.send_text.side_effect = [
            RuntimeError("blocked"),
            SentMessage(success=True, message_id="2"),
        ]
        service = _service(habit_registry, schedule, messenger, recipients=(111, 222))
        assert await service.send(Reminder("quran", "Quran", START, _at(4, 45))) == 1

    @pytest.mark.asyncio
    async def test_unsuccessful_send_not_counted(self, habit_registry, schedule, messenger):
        messenger.send_text.return_value = SentMessage(success=False)
        service = _service(habit_registry, schedule, messenger)
        assert await service.send(Reminder("quran", "Quran", START, _at(4, 45))) == 0

    def test_default_recipients_are_allowed_users(self, habit_registry, schedule, messenger):
        service = HabitReminderService(habit_registry, schedule, messenger)
        assert service._recipients == [12345]
