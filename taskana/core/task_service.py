"""
Taskana — Task Operations.

Business rules on top of the day log storage: lifecycle guards (a done or
shifted task is final), shift-by-forking, and near-duplicate detection
across the surrounding week.

Expected failures come back as TaskResult(success=False, error=...) with a
user-facing message; only storage exceptions propagate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Callable

from taskana.core import messages
from taskana.core.normalizer import format_display_date, normalize_task_reference, similarity
from taskana.data.models import Status, TaskEntry, TimeSlot

if TYPE_CHECKING:
    from taskana.core.classifier import ExtractedEntities
    from taskana.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)

DEFAULT_TIME_SLOT = TimeSlot.AFTER_DHUHR
# Days scanned on each side of the given day by find_similar_in_week()
_WEEK_RADIUS = 3


class TaskError(str, Enum):
    MISSING_TITLE = "missing_title"
    NOT_FOUND = "not_found"
    ALREADY_COMPLETED = "already_completed"
    ALREADY_SHIFTED = "already_shifted"
    PAST_DATE = "past_date"
    NO_UPDATES = "no_updates"
    DELETE_FAILED = "delete_failed"


@dataclass
class TaskResult:
    success: bool
    message: str
    task: TaskEntry | None = None
    error: TaskError | None = None


@dataclass
class SimilarTask:
    task: TaskEntry
    date: str
    similarity: float


def _fail(error: TaskError, message: str, task: TaskEntry | None = None) -> TaskResult:
    return TaskResult(success=False, message=message, task=task, error=error)


class TaskService:
    """Create, complete, skip, shift, update and delete tasks of a given day."""

    def __init__(
        self,
        storage: StoragePort,
        clock: Callable[[], datetime] | None = None,
        similarity_threshold: float | None = None,
    ) -> None:
        if similarity_threshold is None:
            from taskana.config import settings
            similarity_threshold = settings.DUPLICATE_SIMILARITY

        self._storage = storage
        self._clock = clock or datetime.now
        self._similarity_threshold = similarity_threshold

    def _today(self) -> date:
        return self._clock().date()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, day: str, entities: ExtractedEntities) -> TaskResult:
        """Add a task from extracted entities. The slot defaults to after Dhuhr."""
        if not entities.task_title:
            return _fail(TaskError.MISSING_TITLE, messages.TASK_MISSING_TITLE)

        task = self._storage.add_task(
            day,
            title=entities.task_title,
            time_slot=entities.time_slot or DEFAULT_TIME_SLOT,
            description=entities.task_description,
        )
        logger.info("Created task %s on %s: '%s'", task.id, day, task.title)
        return TaskResult(success=True, message=messages.task_created(task.title), task=task)

    def complete(self, day: str, ref: str) -> TaskResult:
        task_id = normalize_task_reference(ref)
        task = self._storage.get_task(day, task_id)

        if task is None:
            return _fail(TaskError.NOT_FOUND, messages.task_not_found(ref))
        if task.status == Status.DONE:
            return _fail(TaskError.ALREADY_COMPLETED, messages.task_already_completed(task.title), task)
        if task.status == Status.SHIFTED:
            return _fail(TaskError.ALREADY_SHIFTED, messages.task_was_shifted(task.title), task)

        updated = self._storage.update_task(day, task_id, status=Status.DONE)
        logger.info("Completed task %s on %s", task_id, day)
        return TaskResult(success=True, message=messages.task_completed(task.title), task=updated)

    def skip(self, day: str, ref: str, justification: str | None = None) -> TaskResult:
        """Skip a task. Unlike habits, no justification is required.

        A skipped task is not final: it can still be completed or shifted.
        """
        task_id = normalize_task_reference(ref)
        task = self._storage.get_task(day, task_id)

        if task is None:
            return _fail(TaskError.NOT_FOUND, messages.task_not_found(ref))
        if task.status == Status.DONE:
            return _fail(
                TaskError.ALREADY_COMPLETED, messages.task_already_completed_skip(task.title), task
            )
        if task.status == Status.SHIFTED:
            return _fail(TaskError.ALREADY_SHIFTED, messages.task_was_shifted(task.title), task)

        updates: dict[str, object] = {"status": Status.SKIPPED}
        if justification:
            # shift_reason doubles as the skip justification
            updates["shift_reason"] = justification
        updated = self._storage.update_task(day, task_id, **updates)
        logger.info("Skipped task %s on %s", task_id, day)
        return TaskResult(success=True, message=messages.task_skipped(task.title), task=updated)

    def shift(
        self,
        day: str,
        ref: str,
        target_date: str,
        reason: str | None = None,
    ) -> TaskResult:
        """Move a task to another day.

        The source entry is kept and marked shifted; a fresh entry with
        origin=day is created on the target day and returned. The past-date
        check runs before the task lookup.
        """
        today = self._today()
        if date.fromisoformat(target_date) < today:
            return _fail(TaskError.PAST_DATE, messages.TASK_SHIFT_PAST_DATE)

        task_id = normalize_task_reference(ref)
        task = self._storage.get_task(day, task_id)

        if task is None:
            return _fail(TaskError.NOT_FOUND, messages.task_not_found(ref))
        if task.status == Status.DONE:
            return _fail(
                TaskError.ALREADY_COMPLETED, messages.task_already_completed_shift(task.title), task
            )
        if task.status == Status.SHIFTED:
            return _fail(TaskError.ALREADY_SHIFTED, messages.task_already_shifted(task.title), task)

        self._storage.update_task(
            day, task_id,
            status=Status.SHIFTED,
            shifted_to=target_date,
            shift_reason=reason,
        )
        new_task = self._storage.add_task(
            target_date,
            title=task.title,
            time_slot=task.time_slot,
            description=task.description,
            origin=day,
        )
        logger.info("Shifted task %s from %s to %s as %s", task_id, day, target_date, new_task.id)

        when = format_display_date(target_date, today)
        return TaskResult(success=True, message=messages.task_shifted(task.title, when), task=new_task)

    def update(self, day: str, ref: str, entities: ExtractedEntities) -> TaskResult:
        """Change title, description and/or time slot; other entities are ignored."""
        task_id = normalize_task_reference(ref)
        task = self._storage.get_task(day, task_id)

        if task is None:
            return _fail(TaskError.NOT_FOUND, messages.task_not_found(ref))

        updates: dict[str, object] = {}
        if entities.task_title:
            updates["title"] = entities.task_title
        if entities.task_description:
            updates["description"] = entities.task_description
        if entities.time_slot:
            updates["time_slot"] = entities.time_slot

        if not updates:
            return _fail(TaskError.NO_UPDATES, messages.TASK_NO_UPDATES, task)

        updated = self._storage.update_task(day, task_id, **updates)
        logger.info("Updated task %s on %s: %s", task_id, day, sorted(updates))
        return TaskResult(success=True, message=messages.task_updated(updated.title), task=updated)

    def delete(self, day: str, ref: str) -> TaskResult:
        task_id = normalize_task_reference(ref)
        task = self._storage.get_task(day, task_id)

        if task is None:
            return _fail(TaskError.NOT_FOUND, messages.task_not_found(ref))

        if not self._storage.delete_task(day, task_id):
            return _fail(TaskError.DELETE_FAILED, messages.TASK_DELETE_FAILED, task)

        logger.info("Deleted task %s on %s", task_id, day)
        return TaskResult(success=True, message=messages.task_deleted(task.title), task=task)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_for_day(self, day: str) -> list[TaskEntry]:
        return self._storage.get_day(day).tasks

    def get_by_id(self, day: str, ref: str) -> TaskEntry | None:
        return self._storage.get_task(day, normalize_task_reference(ref))

    def get_by_slot(self, day: str) -> dict[TimeSlot, list[TaskEntry]]:
        return self._storage.get_tasks_by_slot(day)

    def find_similar_in_week(self, day: str, title: str) -> SimilarTask | None:
        """Best open task within ±3 days whose title overlaps `title` enough.

        Done and shifted tasks are ignored. On equal scores the earliest
        match in scan order (oldest day first) wins.
        """
        base = date.fromisoformat(day)
        best: SimilarTask | None = None

        for offset in range(-_WEEK_RADIUS, _WEEK_RADIUS + 1):
            check_date = (base + timedelta(days=offset)).isoformat()
            for task in self._storage.get_day(check_date).tasks:
                if task.status in (Status.DONE, Status.SHIFTED):
                    continue
                score = similarity(title, task.title)
                if score < self._similarity_threshold:
                    continue
                if best is None or score > best.similarity:
                    best = SimilarTask(task=task, date=check_date, similarity=score)

        if best is not None:
            logger.debug(
                "Similar task for '%s': %s on %s (%.2f)",
                title, best.task.id, best.date, best.similarity,
            )
        return best
