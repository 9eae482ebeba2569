"""
Taskana — Prayer Schedule.

Maps wall-clock time onto the nine prayer-anchored time slots. Prayer times
are fixed daily clock times from settings (FAJR_TIME … ISHA_TIME); each
"before_X" slot is the BEFORE_SLOT_OFFSET_MINUTES window leading up to
prayer X.

Before Fajr the day is still in after_isha.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from taskana.data.models import TimeSlot

logger = logging.getLogger(__name__)

PRAYERS = ("fajr", "dhuhr", "asr", "maghrib", "isha")

# slot -> (prayer it hangs off, "after" | "before")
_SLOT_ANCHORS: dict[TimeSlot, tuple[str, str]] = {
    TimeSlot.AFTER_FAJR: ("fajr", "after"),
    TimeSlot.BEFORE_DHUHR: ("dhuhr", "before"),
    TimeSlot.AFTER_DHUHR: ("dhuhr", "after"),
    TimeSlot.BEFORE_ASR: ("asr", "before"),
    TimeSlot.AFTER_ASR: ("asr", "after"),
    TimeSlot.BEFORE_MAGHRIB: ("maghrib", "before"),
    TimeSlot.AFTER_MAGHRIB: ("maghrib", "after"),
    TimeSlot.BEFORE_ISHA: ("isha", "before"),
    TimeSlot.AFTER_ISHA: ("isha", "after"),
}

_ORDER = list(_SLOT_ANCHORS)


def _parse_clock(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


class PrayerSchedule:
    """Time-slot boundaries computed from configured prayer clock times."""

    def __init__(
        self,
        prayer_times: dict[str, str] | None = None,
        timezone: str | None = None,
        before_offset_minutes: int | None = None,
    ) -> None:
        from taskana.config import settings

        if prayer_times is None:
            prayer_times = {
                "fajr": settings.FAJR_TIME,
                "dhuhr": settings.DHUHR_TIME,
                "asr": settings.ASR_TIME,
                "maghrib": settings.MAGHRIB_TIME,
                "isha": settings.ISHA_TIME,
            }
        missing = [p for p in PRAYERS if p not in prayer_times]
        if missing:
            raise ValueError(f"Missing prayer times: {', '.join(missing)}")

        self._clock_times = {p: _parse_clock(prayer_times[p]) for p in PRAYERS}
        ordered = [self._clock_times[p] for p in PRAYERS]
        if ordered != sorted(ordered):
            raise ValueError("Prayer times must be in order: fajr < dhuhr < asr < maghrib < isha")

        self._tz = ZoneInfo(timezone or settings.TIMEZONE)
        offset = settings.BEFORE_SLOT_OFFSET_MINUTES if before_offset_minutes is None else before_offset_minutes
        self._offset = timedelta(minutes=offset)

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    def now(self) -> datetime:
        return datetime.now(self._tz)

    def get_times(self, day: date) -> dict[str, datetime]:
        """Prayer times on a given day as timezone-aware datetimes."""
        return {
            p: datetime.combine(day, t, tzinfo=self._tz)
            for p, t in self._clock_times.items()
        }

    def get_slot_start(self, slot: TimeSlot, day: date) -> datetime:
        prayer, side = _SLOT_ANCHORS[slot]
        anchor = self.get_times(day)[prayer]
        return anchor - self._offset if side == "before" else anchor

    def get_slot_end(self, slot: TimeSlot, day: date) -> datetime:
        """When the slot ends, i.e. the next slot starts. after_isha runs to next Fajr."""
        index = _ORDER.index(slot)
        if index + 1 < len(_ORDER):
            return self.get_slot_start(_ORDER[index + 1], day)
        return self.get_times(day + timedelta(days=1))["fajr"]

    def get_current_slot(self, now: datetime | None = None) -> TimeSlot:
        """The slot `now` falls in. Naive datetimes are taken as local time."""
        if now is None:
            now = self.now()
        elif now.tzinfo is None:
            now = now.replace(tzinfo=self._tz)
        else:
            now = now.astimezone(self._tz)

        day = now.date()
        for slot in _ORDER:
            if self.get_slot_start(slot, day) <= now < self.get_slot_end(slot, day):
                return slot
        # Between midnight and Fajr
        return TimeSlot.AFTER_ISHA

    def describe(self, day: date) -> str:
        times = self.get_times(day)
        return ", ".join(f"{p.title()}: {times[p]:%H:%M}" for p in PRAYERS)
