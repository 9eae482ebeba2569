"""Storage port — abstract interface for the day-keyed log.

Implementations must make each call internally atomic.
"""

from __future__ import annotations

from typing import Protocol

from taskana.data.models import DayLog, HabitEntry, Status, TaskEntry, TimeSlot


class StoragePort(Protocol):
    """Abstract day log storage used by core modules."""

    def get_day(self, date: str) -> DayLog: ...

    def add_task(
        self,
        date: str,
        title: str,
        time_slot: TimeSlot,
        description: str | None = None,
        origin: str | None = None,
    ) -> TaskEntry: ...

    def get_task(self, date: str, task_id: str) -> TaskEntry | None: ...

    def update_task(self, date: str, task_id: str, **updates: object) -> TaskEntry | None: ...

    def delete_task(self, date: str, task_id: str) -> bool: ...

    def get_tasks_by_slot(self, date: str) -> dict[TimeSlot, list[TaskEntry]]: ...

    def update_habit_status(
        self,
        date: str,
        habit_id: str,
        status: Status,
        justification: str | None = None,
    ) -> HabitEntry: ...

    def get_habit_entry(self, date: str, habit_id: str) -> HabitEntry | None: ...

    def add_image(self, date: str, kind: str, item_id: str, image_path: str) -> bool: ...
