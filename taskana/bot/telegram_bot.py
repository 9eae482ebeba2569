"""
Taskana — Telegram Bot.

Telegram is the transport: text, voice notes and photos arrive here and
are handed to the ConversationRouter, which replies through the
TelegramMessenger. This module only wires things together.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
from datetime import time as dt_time
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from taskana.config import settings
from taskana.core import messages

if TYPE_CHECKING:
    from taskana.core.reminders import HabitReminderService
    from taskana.core.router import ConversationRouter

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    Strangers get no response at all, so the bot doesn't reveal itself.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


def _conversation_id(update: Update) -> str:
    return str(update.effective_chat.id)


def _router(context: ContextTypes.DEFAULT_TYPE) -> ConversationRouter:
    return context.bot_data["router"]


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message."""
    await update.message.reply_text(messages.GREETING)


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(messages.HELP)


@authorized_only
async def cmd_today(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /today — habits and tasks for today."""
    try:
        summary = _router(context).today_summary()
    except Exception:
        logger.exception("/today failed")
        summary = messages.ERROR_GENERIC
    await update.message.reply_text(summary)


# ---------------------------------------------------------------------------
# Message handlers
# ---------------------------------------------------------------------------


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _router(context).handle_text(_conversation_id(update), update.message.text)


@authorized_only
async def handle_voice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Voice notes are transcribed by the router and handled like text."""
    voice = update.message.voice or update.message.audio
    await _router(context).handle_audio(_conversation_id(update), voice.file_id)


@authorized_only
async def handle_photo(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    # Telegram sends several sizes; the last one is the largest
    photo = update.message.photo[-1]
    await _router(context).handle_image(_conversation_id(update), photo.file_id)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_services(app: Application) -> tuple[ConversationRouter, HabitReminderService]:
    """Wire the default adapters into a ConversationRouter and a reminder service."""
    from datetime import timedelta

    from taskana.adapters.telegram_messenger import TelegramMessenger
    from taskana.core.classifier import IntentClassifier
    from taskana.core.reminders import HabitReminderService
    from taskana.core.router import ConversationRouter
    from taskana.core.schedule import PrayerSchedule
    from taskana.core.state_store import StateStore
    from taskana.core.task_service import TaskService
    from taskana.core.transcriber import WhisperTranscriber
    from taskana.data.db import DayLogDB
    from taskana.data.habits import HabitRegistry

    schedule = PrayerSchedule()
    storage = DayLogDB()
    habits = HabitRegistry()
    habits.load_all()

    messenger = TelegramMessenger(app.bot)

    logger.info("Prayer times: %s", schedule.describe(schedule.now().date()))

    router = ConversationRouter(
        messaging=messenger,
        transcriber=WhisperTranscriber(),
        classifier=IntentClassifier(),
        state_store=StateStore(
            expiry=timedelta(minutes=settings.PENDING_EXPIRY_MINUTES),
            max_messages=settings.MAX_RECENT_MESSAGES,
        ),
        storage=storage,
        habits=habits,
        schedule=schedule,
        task_service=TaskService(storage, clock=schedule.now),
        clock=schedule.now,
    )
    return router, HabitReminderService(habits, schedule, messenger)


def build_app(
    router: ConversationRouter | None = None,
    reminders: HabitReminderService | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        router: Conversation router to use. Defaults to one wired with the
                SQLite day log, JSON habits, Whisper and the configured LLM.
        reminders: Habit reminder service. Built alongside the default router;
                   when a router is injected without one, no reminders run.
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if router is None:
        router, default_reminders = build_services(app)
        reminders = reminders or default_reminders

    # Stored in bot_data for handler access
    app.bot_data["router"] = router

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("today", cmd_today))

    # Text messages (non-command)
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    # Voice notes and audio files
    app.add_handler(MessageHandler(filters.VOICE | filters.AUDIO, handle_voice))

    # Photos
    app.add_handler(MessageHandler(filters.PHOTO, handle_photo))

    # Habit reminders, re-planned daily
    if reminders is not None:
        _setup_habit_reminders(app, reminders)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


REMINDER_JOB = "habit_reminder"
PLANNER_JOB = "habit_reminder_planner"


def _setup_habit_reminders(app: Application, reminders: HabitReminderService) -> None:
    """Plan today's reminders at startup and again every midnight (local time)."""
    tz = ZoneInfo(settings.TIMEZONE)

    async def _fire_reminder(context: ContextTypes.DEFAULT_TYPE) -> None:
        await reminders.send(context.job.data)

    async def _plan_day(context: ContextTypes.DEFAULT_TYPE) -> None:
        job_queue = context.job_queue
        for job in job_queue.get_jobs_by_name(REMINDER_JOB):
            job.schedule_removal()
        for reminder in reminders.plan():
            job_queue.run_once(_fire_reminder, when=reminder.at, data=reminder, name=REMINDER_JOB)

    app.job_queue.run_daily(_plan_day, time=dt_time(hour=0, minute=0, tzinfo=tz), name=PLANNER_JOB)
    app.job_queue.run_once(_plan_day, when=5, name=PLANNER_JOB)

    logger.info("Habit reminders scheduled daily at 00:00 %s", settings.TIMEZONE)


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Taskana bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
