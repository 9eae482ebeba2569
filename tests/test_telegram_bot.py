"""Tests for taskana.bot.telegram_bot — Telegram handlers and authorization.

The router is mocked; these tests only check that updates are routed to it
with the right conversation ID and media handle.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from taskana.core import messages


def _make_update(text=None, user_id=12345, chat_id=777):
    """Create a mock Update with a message from an authorized user."""
    update = MagicMock()
    update.message.text = text
    update.effective_user.id = user_id
    update.effective_chat.id = chat_id
    update.message.reply_text = AsyncMock()
    return update


def _make_context(router=None):
    context = MagicMock()
    context.bot_data = {"router": router or MagicMock()}
    return context


def _mock_router():
    router = MagicMock()
    router.handle_text = AsyncMock()
    router.handle_audio = AsyncMock()
    router.handle_image = AsyncMock()
    router.today_summary.return_value = "ملخص"
    return router


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_unauthorized_user_ignored(self):
        from taskana.bot.telegram_bot import handle_text

        router = _mock_router()
        update = _make_update("hello", user_id=99999)
        await handle_text(update, _make_context(router))

        router.handle_text.assert_not_awaited()
        update.message.reply_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unauthorized_command_ignored(self):
        from taskana.bot.telegram_bot import cmd_start

        update = _make_update("/start", user_id=99999)
        await cmd_start(update, _make_context())
        update.message.reply_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_user_ignored(self):
        from taskana.bot.telegram_bot import handle_text

        router = _mock_router()
        update = _make_update("hello")
        update.effective_user = None
        await handle_text(update, _make_context(router))
        router.handle_text.assert_not_awaited()


class TestMessageHandlers:
    @pytest.mark.asyncio
    async def test_text_routed_with_chat_id(self):
        from taskana.bot.telegram_bot import handle_text

        router = _mock_router()
        await handle_text(_make_update("ضيف تاسك"), _make_context(router))
        router.handle_text.assert_awaited_once_with("777", "ضيف تاسك")

    @pytest.mark.asyncio
    async def test_voice_routed_with_file_id(self):
        from taskana.bot.telegram_bot import handle_voice

        router = _mock_router()
        update = _make_update()
        update.message.voice.file_id = "voice-123"
        await handle_voice(update, _make_context(router))
        router.handle_audio.assert_awaited_once_with("777", "voice-123")

    @pytest.mark.asyncio
    async def test_photo_uses_largest_size(self):
        from taskana.bot.telegram_bot import handle_photo

        router = _mock_router()
        update = _make_update()
        small, large = MagicMock(file_id="small"), MagicMock(file_id="large")
        update.message.photo = [small, large]
        await handle_photo(update, _make_context(router))
        router.handle_image.assert_awaited_once_with("777", "large")


class TestCommands:
    @pytest.mark.asyncio
    async def test_start(self):
        from taskana.bot.telegram_bot import cmd_start

        update = _make_update("/start")
        await cmd_start(update, _make_context())
        update.message.reply_text.assert_awaited_once_with(messages.GREETING)

    @pytest.mark.asyncio
    async def test_help(self):
        from taskana.bot.telegram_bot import cmd_help

        update = _make_update("/help")
        await cmd_help(update, _make_context())
        update.message.reply_text.assert_awaited_once_with(messages.HELP)

    @pytest.mark.asyncio
    async def test_today(self):
        from taskana.bot.telegram_bot import cmd_today

        update = _make_update("/today")
        await cmd_today(update, _make_context(_mock_router()))
        update.message.reply_text.assert_awaited_once_with("ملخص")

    @pytest.mark.asyncio
    async def test_today_error(self):
        from taskana.bot.telegram_bot import cmd_today

        router = _mock_router()
        router.today_summary.side_effect = RuntimeError("db locked")
        update = _make_update("/today")
        await cmd_today(update, _make_context(router))
        update.message.reply_text.assert_awaited_once_with(messages.ERROR_GENERIC)


class TestBuildApp:
    def test_registers_handlers_and_router(self):
        from taskana.bot.telegram_bot import build_app

        router = _mock_router()
        app = build_app(router=router)
        assert app.bot_data["router"] is router
        assert len(app.handlers[0]) == 6


class TestHabitReminderJobs:
    def _setup(self):
        from taskana.bot.telegram_bot import _setup_habit_reminders

        app = MagicMock()
        reminders = MagicMock()
        reminders.send = AsyncMock(return_value=1)
        _setup_habit_reminders(app, reminders)
        return app, reminders

    def test_planner_runs_at_midnight_and_startup(self):
        from taskana.bot.telegram_bot import PLANNER_JOB

        app, _ = self._setup()
        daily = app.job_queue.run_daily.call_args
        assert daily.kwargs["time"].hour == 0
        assert daily.kwargs["time"].minute == 0
        assert daily.kwargs["time"].tzinfo is not None
        assert daily.kwargs["name"] == PLANNER_JOB
        assert app.job_queue.run_once.call_args.kwargs["name"] == PLANNER_JOB

    @pytest.mark.asyncio
    async def test_planner_replaces_reminder_jobs(self):
        from taskana.bot.telegram_bot import REMINDER_JOB

        app, reminders = self._setup()
        plan_day = app.job_queue.run_daily.call_args.args[0]
        first, second = MagicMock(at="04:45"), MagicMock(at="05:10")
        reminders.plan.return_value = [first, second]
        stale = MagicMock()
        context = MagicMock()
        context.job_queue.get_jobs_by_name.return_value = [stale]

        await plan_day(context)

        context.job_queue.get_jobs_by_name.assert_called_once_with(REMINDER_JOB)
        stale.schedule_removal.assert_called_once()
        scheduled = context.job_queue.run_once.call_args_list
        assert [c.kwargs["data"] for c in scheduled] == [first, second]
        assert [c.kwargs["when"] for c in scheduled] == ["04:45", "05:10"]
        assert all(c.kwargs["name"] == REMINDER_JOB for c in scheduled)

    @pytest.mark.asyncio
    async def test_reminder_job_sends(self):
        app, reminders = self._setup()
        plan_day = app.job_queue.run_daily.call_args.args[0]
        reminder = MagicMock(at="04:45")
        reminders.plan.return_value = [reminder]
        context = MagicMock()
        context.job_queue.get_jobs_by_name.return_value = []
        await plan_day(context)

        fire = context.job_queue.run_once.call_args.args[0]
        job_context = MagicMock()
        job_context.job.data = reminder
        await fire(job_context)
        reminders.send.assert_awaited_once_with(reminder)
