"""Tests for taskana.core.schedule — prayer-anchored time slots."""

from datetime import date, datetime, timedelta, timezone

import pytest

from taskana.core.schedule import PrayerSchedule
from taskana.data.models import TimeSlot

TIMES = {
    "fajr": "04:45",
    "dhuhr": "11:55",
    "asr": "15:10",
    "maghrib": "17:45",
    "isha": "19:05",
}
DAY = date(2026, 2, 16)


@pytest.fixture
def schedule():
    return PrayerSchedule(prayer_times=TIMES, timezone="Africa/Cairo", before_offset_minutes=30)


def _at(hour, minute=0):
    return datetime(2026, 2, 16, hour, minute)


class TestGetCurrentSlot:
    @pytest.mark.parametrize("clock,expected", [
        ((5, 0), TimeSlot.AFTER_FAJR),
        ((11, 30), TimeSlot.BEFORE_DHUHR),
        ((11, 25), TimeSlot.BEFORE_DHUHR),
        ((11, 24), TimeSlot.AFTER_FAJR),
        ((13, 0), TimeSlot.AFTER_DHUHR),
        ((14, 45), TimeSlot.BEFORE_ASR),
        ((16, 0), TimeSlot.AFTER_ASR),
        ((17, 30), TimeSlot.BEFORE_MAGHRIB),
        ((18, 0), TimeSlot.AFTER_MAGHRIB),
        ((18, 40), TimeSlot.BEFORE_ISHA),
        ((19, 5), TimeSlot.AFTER_ISHA),
        ((23, 59), TimeSlot.AFTER_ISHA),
    ])
    def test_slots(self, schedule, clock, expected):
        assert schedule.get_current_slot(_at(*clock)) == expected

    def test_before_fajr_is_after_isha(self, schedule):
        assert schedule.get_current_slot(_at(3, 0)) == TimeSlot.AFTER_ISHA

    def test_aware_datetime_converted(self, schedule):
        # 11:00 UTC is 13:00 in Cairo (UTC+2 in February)
        aware = datetime(2026, 2, 16, 11, 0, tzinfo=timezone.utc)
        assert schedule.get_current_slot(aware) == TimeSlot.AFTER_DHUHR

    def test_defaults_to_now(self, schedule):
        assert schedule.get_current_slot() in TimeSlot


class TestSlotBoundaries:
    def test_before_slot_offset(self, schedule):
        start = schedule.get_slot_start(TimeSlot.BEFORE_ASR, DAY)
        assert (start.hour, start.minute) == (14, 40)

    def test_slot_end_is_next_start(self, schedule):
        end = schedule.get_slot_end(TimeSlot.AFTER_DHUHR, DAY)
        assert end == schedule.get_slot_start(TimeSlot.BEFORE_ASR, DAY)

    def test_after_isha_ends_next_fajr(self, schedule):
        end = schedule.get_slot_end(TimeSlot.AFTER_ISHA, DAY)
        assert end.date() == DAY + timedelta(days=1)
        assert (end.hour, end.minute) == (4, 45)

    def test_times_are_timezone_aware(self, schedule):
        times = schedule.get_times(DAY)
        assert all(t.tzinfo is not None for t in times.values())
        assert "Fajr: 04:45" in schedule.describe(DAY)


class TestValidation:
    def test_missing_prayer(self):
        with pytest.raises(ValueError, match="isha"):
            PrayerSchedule(prayer_times={k: v for k, v in TIMES.items() if k != "isha"})

    def test_out_of_order(self):
        with pytest.raises(ValueError, match="order"):
            PrayerSchedule(prayer_times=dict(TIMES, asr="11:00"))

    def test_defaults_from_settings(self):
        schedule = PrayerSchedule()
        assert schedule.tz.key == "Africa/Cairo"
        assert schedule.now().tzinfo is not None
