"""
Taskana — Data Models.

The Memory pillar: each day has its own log of habit check-ins and tasks.
Tasks are never moved between days — shifting forks a new entry on the
target day and leaves the original behind with status "shifted".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TimeSlot(str, Enum):
    """Windows of the day anchored to the five daily prayers."""

    AFTER_FAJR = "after_fajr"
    BEFORE_DHUHR = "before_dhuhr"
    AFTER_DHUHR = "after_dhuhr"
    BEFORE_ASR = "before_asr"
    AFTER_ASR = "after_asr"
    BEFORE_MAGHRIB = "before_maghrib"
    AFTER_MAGHRIB = "after_maghrib"
    BEFORE_ISHA = "before_isha"
    AFTER_ISHA = "after_isha"


# Chronological order within a day (Enum iteration order)
TIME_SLOTS: tuple[TimeSlot, ...] = tuple(TimeSlot)


class Status(str, Enum):
    PENDING = "pending"
    DONE = "done"
    SKIPPED = "skipped"
    SHIFTED = "shifted"


# Indexed by date.weekday() (Monday == 0)
DAYS_OF_WEEK: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


@dataclass
class HabitEntry:
    """A habit's check-in for one day."""

    habit_id: str
    status: Status = Status.PENDING
    justification: str | None = None   # why it was skipped
    completed_at: str | None = None    # ISO timestamp
    images: list[str] = field(default_factory=list)


@dataclass
class TaskEntry:
    """A one-off task scheduled into a time slot of a given day.

    IDs look like "t-001" and are unique only within their day.
    """

    id: str
    title: str
    time_slot: TimeSlot
    created_at: str                    # ISO timestamp
    status: Status = Status.PENDING
    description: str | None = None
    completed_at: str | None = None    # ISO timestamp
    shifted_to: str | None = None      # ISO date this entry was forked to
    shift_reason: str | None = None    # shift reason, or skip justification
    origin: str | None = None          # ISO date this entry was forked from
    images: list[str] = field(default_factory=list)


@dataclass
class DayLog:
    """Everything recorded for a single date (YYYY-MM-DD)."""

    date: str
    habits: list[HabitEntry] = field(default_factory=list)
    tasks: list[TaskEntry] = field(default_factory=list)
    next_task_id: int = 1
