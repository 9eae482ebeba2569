"""
Taskana — Habit Reminders.

Each of today's habits gets up to two nudges: one when its time slot opens
and one a few minutes before its window closes. A habit's window is its
slot start plus duration_minutes, cut off at the end of the slot.

This module only plans and sends; the bot shell owns the timers
(python-telegram-bot's JobQueue) and re-plans every day at midnight.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from taskana.core import messages
from taskana.core.normalizer import weekday_key

if TYPE_CHECKING:
    from taskana.core.schedule import PrayerSchedule
    from taskana.data.habits import Habit, HabitRegistry
    from taskana.ports.messaging_port import MessagingPort

logger = logging.getLogger(__name__)

START = "start"
BEFORE_END = "before_end"


@dataclass
class Reminder:
    habit_id: str
    habit_name: str
    kind: str  # START | BEFORE_END
    at: datetime
    minutes_left: int = 0

    @property
    def text(self) -> str:
        if self.kind == START:
            return messages.habit_reminder_start(self.habit_name)
        return messages.habit_reminder_end(self.habit_name, self.minutes_left)


class HabitReminderService:
    """Plans today's habit reminders and delivers them to the allowed users."""

    def __init__(
        self,
        habits: HabitRegistry,
        schedule: PrayerSchedule,
        messaging: MessagingPort,
        recipients: list[int] | None = None,
    ) -> None:
        if recipients is None:
            from taskana.config import settings
            recipients = settings.ALLOWED_USER_IDS

        self._habits = habits
        self._schedule = schedule
        self._messaging = messaging
        self._recipients = list(recipients)

    def habit_window(self, habit: Habit, now: datetime) -> tuple[datetime, datetime]:
        slot = habit.schedule.time_slot
        start = self._schedule.get_slot_start(slot, now.date())
        slot_end = self._schedule.get_slot_end(slot, now.date())
        end = min(start + timedelta(minutes=habit.schedule.duration_minutes), slot_end)
        return start, end

    def plan(self, now: datetime | None = None) -> list[Reminder]:
        """Reminders still ahead of `now` for the habits scheduled today, in time order."""
        if now is None:
            now = self._schedule.now()

        planned: list[Reminder] = []
        for habit in self._habits.get_for_day(weekday_key(now.date())):
            start, end = self.habit_window(habit, now)

            if habit.reminders.at_start:
                if start > now:
                    planned.append(Reminder(habit.id, habit.name, START, start))
                else:
                    logger.debug("Skipping past start reminder for %s (%s)", habit.id, start)

            if habit.reminders.before_end:
                minutes = habit.reminders.before_end_minutes
                at = end - timedelta(minutes=minutes)
                if at > now and at > start:
                    planned.append(Reminder(habit.id, habit.name, BEFORE_END, at, minutes))
                else:
                    logger.debug("Skipping before-end reminder for %s (%s)", habit.id, at)

        planned.sort(key=lambda r: r.at)
        logger.info("Planned %d habit reminders for %s", len(planned), now.date())
        return planned

    async def send(self, reminder: Reminder) -> int:
        """Deliver a reminder to every recipient. Returns how many sends succeeded."""
        delivered = 0
        for chat_id in self._recipients:
            try:
                sent = await self._messaging.send_text(str(chat_id), reminder.text)
            except Exception as exc:
                logger.error("Failed to send %s reminder for %s to %s: %s",
                             reminder.kind, reminder.habit_id, chat_id, exc)
                continue
            if sent.success:
                delivered += 1
        logger.info("Sent %s reminder for %s to %d chat(s)", reminder.kind, reminder.habit_id, delivered)
        return delivered
