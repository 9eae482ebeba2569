"""
Taskana — Summaries.

Plain-text renderings of a day (habits + tasks grouped by time slot), the
habit checklist, and a seven-day overview. Pure functions: callers pass in
what was loaded from storage.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from taskana.core import messages
from taskana.data.models import TIME_SLOTS, DayLog, Status, TaskEntry, TimeSlot

if TYPE_CHECKING:
    from taskana.data.habits import Habit


def _habit_status(day_log: DayLog, habit_id: str) -> Status:
    for entry in day_log.habits:
        if entry.habit_id == habit_id:
            return entry.status
    return Status.PENDING


def _task_line(task: TaskEntry) -> str:
    number = task.id.removeprefix("t-")
    return f"{messages.STATUS_EMOJI[task.status]} {number}. {task.title}"


def render_habit_list(habits: list[Habit], day_log: DayLog) -> str:
    """Today's habits with their check-in status and slot."""
    if not habits:
        return messages.NO_HABITS_TODAY

    lines = ["*عادات النهارده:*", ""]
    for habit in habits:
        emoji = messages.STATUS_EMOJI[_habit_status(day_log, habit.id)]
        slot = messages.SLOT_NAMES[habit.schedule.time_slot]
        lines.append(f"{emoji} *{habit.name}* ({slot})")
    return "\n".join(lines)


def render_task_list(day_log: DayLog) -> str:
    """Open and finished tasks of a day, grouped by slot. Shifted tasks are hidden."""
    tasks = [t for t in day_log.tasks if t.status != Status.SHIFTED]
    if not tasks:
        return messages.NO_TASKS_TODAY

    by_slot: dict[TimeSlot, list[TaskEntry]] = {}
    for task in tasks:
        by_slot.setdefault(task.time_slot, []).append(task)

    lines = ["*المهام:*"]
    for slot in TIME_SLOTS:
        if slot not in by_slot:
            continue
        lines.append("")
        lines.append(f"_{messages.SLOT_NAMES[slot]}:_")
        lines.extend(_task_line(t) for t in by_slot[slot])
    return "\n".join(lines)


def render_daily_summary(day: str, habits: list[Habit], day_log: DayLog) -> str:
    lines = [f"*ملخص يوم {day}:*", ""]

    if habits:
        lines.append("*العادات:*")
        for habit in habits:
            emoji = messages.STATUS_EMOJI[_habit_status(day_log, habit.id)]
            lines.append(f"{emoji} {habit.name}")
        lines.append("")

    has_tasks = any(t.status != Status.SHIFTED for t in day_log.tasks)
    if has_tasks:
        lines.append(render_task_list(day_log))
    elif not habits:
        lines.append(messages.NOTHING_TODAY)

    return "\n".join(lines).rstrip()


def render_weekly_summary(days: list[tuple[str, list[Habit], DayLog]]) -> str:
    """Aggregate habit and task outcomes over consecutive days.

    Args:
        days: (ISO date, habits scheduled that day, that day's log), oldest first.
    """
    if not days:
        return messages.NOTHING_TODAY

    habit_counts: Counter[Status] = Counter()
    task_counts: Counter[Status] = Counter()
    per_day: list[str] = []

    for day, habits, day_log in days:
        done_habits = 0
        for habit in habits:
            status = _habit_status(day_log, habit.id)
            habit_counts[status] += 1
            if status == Status.DONE:
                done_habits += 1
        for task in day_log.tasks:
            task_counts[task.status] += 1
        done_tasks = sum(1 for t in day_log.tasks if t.status == Status.DONE)
        open_tasks = sum(1 for t in day_log.tasks if t.status != Status.SHIFTED)
        per_day.append(
            f"• {day}: عادات {done_habits}/{len(habits)}، مهام {done_tasks}/{open_tasks}"
        )

    scheduled = sum(habit_counts.values())
    rate = round(100 * habit_counts[Status.DONE] / scheduled) if scheduled else 0

    lines = [
        f"*ملخص الأسبوع ({days[0][0]} → {days[-1][0]}):*",
        "",
        "*العادات:*",
        f"{messages.STATUS_EMOJI[Status.DONE]} {habit_counts[Status.DONE]} من {scheduled} ({rate}%)",
        f"{messages.STATUS_EMOJI[Status.SKIPPED]} {habit_counts[Status.SKIPPED]} اتخطت",
        "",
        "*المهام:*",
        f"{messages.STATUS_EMOJI[Status.DONE]} {task_counts[Status.DONE]} خلصت",
        f"{messages.STATUS_EMOJI[Status.PENDING]} {task_counts[Status.PENDING]} لسه",
        f"{messages.STATUS_EMOJI[Status.SKIPPED]} {task_counts[Status.SKIPPED]} اتخطت",
        f"{messages.STATUS_EMOJI[Status.SHIFTED]} {task_counts[Status.SHIFTED]} اتنقلت",
        "",
        *per_day,
    ]
    return "\n".join(lines)
