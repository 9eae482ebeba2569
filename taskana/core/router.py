"""
Taskana — Conversation Router.

Handles every inbound message: builds the turn context, asks the
classifier what the user wants, decides whether to act, confirm or ask
again, runs the matching handler and sends the reply.

Turn policy for a freshly classified message:
    confidence < LOW                      → "didn't understand"
    non-mutating and confidence < MEDIUM  → follow-up question (or "didn't understand")
    mutating and confidence < HIGH        → ask for confirmation, act on "yes"
    otherwise                             → act now

Some replies are expected before classification even runs: a habit-skip
justification is taken verbatim, a shift date is parsed directly, and a
bare number picks an image-tag option.

Turns of the same conversation are serialized by a per-conversation lock.
Unexpected exceptions stop at the turn boundary: they are logged and the
user gets one generic apology.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable

from taskana.core import messages, summaries
from taskana.core.classifier import (
    MUTATING_INTENTS,
    ClassifiedIntent,
    ConversationContext,
    ExtractedEntities,
    IntentType,
)
from taskana.core.normalizer import (
    format_display_date,
    resolve_relative_date,
    similarity,
    weekday_key,
)
from taskana.core.state_store import (
    ImageTagOption,
    PendingConfirmation,
    PendingDuplicate,
    PendingImageTag,
    PendingJustification,
    PendingShiftDate,
    PendingState,
    StateStore,
)
from taskana.core.task_service import TaskError, TaskResult, TaskService
from taskana.data.models import Status

if TYPE_CHECKING:
    from taskana.core.classifier import IntentClassifier
    from taskana.data.habits import Habit, HabitRegistry
    from taskana.ports.messaging_port import MessagingPort
    from taskana.ports.schedule_port import SchedulePort
    from taskana.ports.storage_port import StoragePort
    from taskana.ports.transcription_port import TranscriberPort

logger = logging.getLogger(__name__)

Handler = Callable[[str, ClassifiedIntent, ConversationContext], Awaitable[str]]

# Minimum title overlap to treat "خلصت اشتري خضار" as a reference to a task
_TITLE_MATCH_THRESHOLD = 0.5
_WEEKLY_DAYS = 7
_OPTION_RE = re.compile(r"^\s*(\d+)\s*$")
_IMAGE_PLACEHOLDER = "[صورة]"


def _parse_option(text: str) -> int | None:
    match = _OPTION_RE.match(text)
    # int() also accepts Arabic-Indic digits
    return int(match.group(1)) if match else None


def describe_action(classified: ClassifiedIntent) -> str:
    """Short Arabic description of what a classified action would do."""
    e = classified.entities
    intent = classified.intent
    if intent == IntentType.HABIT_DONE:
        return f"تسجيل إتمام {e.habit_id or 'العادة'}"
    if intent == IntentType.HABIT_SKIPPED:
        return f"تخطي {e.habit_id or 'العادة'}"
    if intent == IntentType.TASK_CREATE:
        return f'إضافة مهمة "{e.task_title or ""}"'
    if intent == IntentType.TASK_COMPLETE:
        return f"إنهاء المهمة {e.task_id or e.task_title or ''}".rstrip()
    if intent == IntentType.TASK_SKIP:
        return f"تخطي المهمة {e.task_id or e.task_title or ''}".rstrip()
    if intent == IntentType.TASK_SHIFT:
        when = e.target_date or e.raw_date_expression or ""
        return f"نقل المهمة {e.task_id or e.task_title or ''} لـ {when}".rstrip()
    if intent == IntentType.TASK_UPDATE:
        return f"تعديل المهمة {e.task_id or ''}".rstrip()
    if intent == IntentType.TASK_DELETE:
        return f"حذف المهمة {e.task_id or e.task_title or ''}".rstrip()
    return intent.value


class ConversationRouter:
    """Per-message orchestrator for one or more conversations."""

    def __init__(
        self,
        messaging: MessagingPort,
        transcriber: TranscriberPort,
        classifier: IntentClassifier,
        state_store: StateStore,
        storage: StoragePort,
        habits: HabitRegistry,
        schedule: SchedulePort,
        task_service: TaskService,
        clock: Callable[[], datetime] | None = None,
        confidence_low: float | None = None,
        confidence_medium: float | None = None,
        confidence_high: float | None = None,
        media_dir: str | None = None,
    ) -> None:
        if None in (confidence_low, confidence_medium, confidence_high, media_dir):
            from taskana.config import settings
            confidence_low = settings.CONFIDENCE_LOW if confidence_low is None else confidence_low
            confidence_medium = (
                settings.CONFIDENCE_MEDIUM if confidence_medium is None else confidence_medium
            )
            confidence_high = settings.CONFIDENCE_HIGH if confidence_high is None else confidence_high
            media_dir = settings.MEDIA_DIR if media_dir is None else media_dir

        self._messaging = messaging
        self._transcriber = transcriber
        self._classifier = classifier
        self._state = state_store
        self._storage = storage
        self._habits = habits
        self._schedule = schedule
        self._tasks = task_service
        self._clock = clock or datetime.now
        self._low = confidence_low
        self._medium = confidence_medium
        self._high = confidence_high
        self._media_dir = Path(media_dir)
        # One lock per conversation ID, kept for the process lifetime; the set
        # of conversations is bounded by ALLOWED_USER_IDS
        self._locks: dict[str, asyncio.Lock] = {}

        self._handlers = self._build_handlers()
        missing = [intent.value for intent in IntentType if intent not in self._handlers]
        if missing:
            raise ValueError(f"No handler registered for intents: {', '.join(missing)}")

    def _build_handlers(self) -> dict[IntentType, Handler]:
        return {
            # Conversation
            IntentType.GREETING: self._handle_greeting,
            IntentType.HELP: self._handle_help,
            IntentType.UNCLEAR: self._handle_unclear,
            IntentType.CONFIRMATION: self._handle_confirmation,
            IntentType.REJECTION: self._handle_rejection,
            IntentType.IMAGE_TAG_RESPONSE: self._handle_image_tag_response,
            # Habits
            IntentType.HABIT_DONE: self._handle_habit_done,
            IntentType.HABIT_SKIPPED: self._handle_habit_skipped,
            IntentType.HABIT_LIST: self._handle_habit_list,
            IntentType.HABIT_STATUS: self._handle_habit_list,
            # Tasks
            IntentType.TASK_CREATE: self._handle_task_create,
            IntentType.TASK_COMPLETE: self._handle_task_complete,
            IntentType.TASK_SKIP: self._handle_task_skip,
            IntentType.TASK_SHIFT: self._handle_task_shift,
            IntentType.TASK_UPDATE: self._handle_task_update,
            IntentType.TASK_DELETE: self._handle_task_delete,
            IntentType.TASK_LIST: self._handle_task_list,
            # Summaries
            IntentType.DAILY_SUMMARY: self._handle_daily_summary,
            IntentType.WEEKLY_SUMMARY: self._handle_weekly_summary,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        return self._locks.setdefault(conversation_id, asyncio.Lock())

    async def handle_text(self, conversation_id: str, text: str) -> None:
        logger.debug("Text from %s: %s", conversation_id, text[:80])
        async with self._lock_for(conversation_id):
            await self._run_turn(conversation_id, text, lambda: self._respond(conversation_id, text))

    async def handle_audio(self, conversation_id: str, media_handle: object) -> None:
        """Transcribe a voice note and handle it as if it had been typed."""
        async with self._lock_for(conversation_id):
            try:
                audio = await self._messaging.download_media(media_handle)
                result = await self._transcriber.transcribe(audio)
            except Exception:
                logger.exception("Could not fetch voice note from %s", conversation_id)
                result = None

            if result is None or not result.success or not result.text:
                if result is not None:
                    logger.warning("Transcription failed for %s: %s", conversation_id, result.error)
                await self._send(conversation_id, messages.TRANSCRIPTION_FAILED)
                return

            text = result.text
            logger.debug(
                "Voice note from %s: %s (confidence %.2f)",
                conversation_id, text[:80], result.confidence,
            )
            await self._run_turn(conversation_id, text, lambda: self._respond(conversation_id, text))

    async def handle_image(self, conversation_id: str, media_handle: object) -> None:
        """Save a photo and ask which of today's habits or tasks it belongs to."""
        async with self._lock_for(conversation_id):
            await self._run_turn(
                conversation_id,
                _IMAGE_PLACEHOLDER,
                lambda: self._receive_image(conversation_id, media_handle),
            )

    async def _run_turn(
        self,
        conversation_id: str,
        user_content: str,
        produce_reply: Callable[[], Awaitable[str]],
    ) -> None:
        self._state.add_message(conversation_id, "user", user_content)
        try:
            reply = await produce_reply()
        except Exception:
            logger.exception("Error handling message from %s", conversation_id)
            reply = messages.ERROR_GENERIC

        await self._send(conversation_id, reply)
        self._state.add_message(conversation_id, "assistant", reply)

    async def _send(self, conversation_id: str, text: str) -> None:
        """Best-effort delivery: failures are logged, never raised."""
        try:
            sent = await self._messaging.send_text(conversation_id, text)
        except Exception:
            logger.exception("Failed to send reply to %s", conversation_id)
            return
        if not sent.success:
            logger.warning("Reply to %s was not delivered", conversation_id)

    # ------------------------------------------------------------------
    # Turn logic
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return self._clock()

    def _today(self) -> date:
        return self._now().date()

    def build_context(self, conversation_id: str) -> ConversationContext:
        state = self._state.get_state(conversation_id)
        now = self._now()
        today = now.date()
        day = today.isoformat()

        todays_habits = self._habits.get_for_day(weekday_key(today))
        tasks = [
            f"{t.id}: {t.title} ({t.status.value})"
            for t in self._storage.get_day(day).tasks
            if t.status != Status.SHIFTED
        ]

        return ConversationContext(
            conversation_id=conversation_id,
            current_date=day,
            current_slot=self._schedule.get_current_slot(now),
            pending_state=state.pending_state,
            pending_reference=state.pending_reference,
            pending_action=state.pending_action,
            active_habits=[h.name for h in todays_habits],
            today_tasks=tasks,
            recent_messages=self._state.get_recent_messages(conversation_id),
        )

    async def _respond(self, conversation_id: str, text: str) -> str:
        reply = self._handle_pending_reply(conversation_id, text)
        if reply is not None:
            return reply

        context = self.build_context(conversation_id)
        classified = await self._classifier.classify(text, context)
        logger.info(
            "Conversation %s: %s (confidence %.2f)",
            conversation_id, classified.intent.value, classified.confidence,
        )

        self._abandon_stale_pending(conversation_id, context.pending_state, classified.intent)
        return await self._apply_policy(conversation_id, classified, context)

    def _abandon_stale_pending(
        self,
        conversation_id: str,
        pending_state: PendingState,
        intent: IntentType,
    ) -> None:
        """Drop a yes/no or image question the user has moved on from."""
        if pending_state in (
            PendingState.AWAITING_CONFIRMATION,
            PendingState.AWAITING_DUPLICATE_CONFIRMATION,
        ):
            expected = {IntentType.CONFIRMATION, IntentType.REJECTION}
        elif pending_state == PendingState.AWAITING_IMAGE_TAG:
            expected = {IntentType.IMAGE_TAG_RESPONSE, IntentType.REJECTION}
        else:
            return

        if intent not in expected:
            logger.info("Abandoning %s for %s", pending_state.value, conversation_id)
            self._state.clear_pending_state(conversation_id)

    async def _apply_policy(
        self,
        conversation_id: str,
        classified: ClassifiedIntent,
        context: ConversationContext,
    ) -> str:
        confidence = classified.confidence
        mutating = classified.intent in MUTATING_INTENTS

        if confidence < self._low:
            return messages.UNKNOWN_INTENT
        if not mutating and confidence < self._medium:
            return classified.follow_up_question or messages.UNKNOWN_INTENT
        if mutating and confidence < self._high:
            return self._request_confirmation(conversation_id, classified)
        return await self._dispatch(conversation_id, classified, context)

    def _request_confirmation(self, conversation_id: str, classified: ClassifiedIntent) -> str:
        action = describe_action(classified)
        self._state.set_state(
            conversation_id,
            pending_state=PendingState.AWAITING_CONFIRMATION,
            pending=PendingConfirmation(classification=classified),
            pending_action=action,
        )
        return messages.confirmation_prompt(action)

    async def _dispatch(
        self,
        conversation_id: str,
        classified: ClassifiedIntent,
        context: ConversationContext,
    ) -> str:
        handler = self._handlers[classified.intent]
        return await handler(conversation_id, classified, context)

    # ------------------------------------------------------------------
    # Replies expected by a pending state (no classification)
    # ------------------------------------------------------------------

    def _handle_pending_reply(self, conversation_id: str, text: str) -> str | None:
        state = self._state.get_state(conversation_id)
        pending = state.pending

        if state.pending_state == PendingState.AWAITING_JUSTIFICATION and isinstance(
            pending, PendingJustification
        ):
            habit = self._habits.get_by_id(pending.habit_id)
            self._storage.update_habit_status(
                pending.day, pending.habit_id, Status.SKIPPED, justification=text,
            )
            self._state.clear_pending_state(conversation_id)
            return messages.habit_skipped(habit.name if habit else pending.habit_id)

        if state.pending_state == PendingState.AWAITING_SHIFT_DATE and isinstance(
            pending, PendingShiftDate
        ):
            target = resolve_relative_date(text, self._today().isoformat())
            if target is None:
                return messages.TASK_SHIFT_UNKNOWN_DATE
            result = self._tasks.shift(pending.day, pending.task_id, target)
            # A past date keeps the question open so the user can pick another day
            if result.error != TaskError.PAST_DATE:
                self._state.clear_pending_state(conversation_id)
            return self._with_day(result, target)

        if state.pending_state == PendingState.AWAITING_IMAGE_TAG and isinstance(
            pending, PendingImageTag
        ):
            option = _parse_option(text)
            if option is not None:
                return self._tag_image(conversation_id, pending, option)

        return None

    # ------------------------------------------------------------------
    # Conversation handlers
    # ------------------------------------------------------------------

    async def _handle_greeting(self, conversation_id, classified, context) -> str:
        return messages.GREETING

    async def _handle_help(self, conversation_id, classified, context) -> str:
        return messages.HELP

    async def _handle_unclear(self, conversation_id, classified, context) -> str:
        return classified.follow_up_question or messages.UNKNOWN_INTENT

    async def _handle_confirmation(
        self,
        conversation_id: str,
        classified: ClassifiedIntent,
        context: ConversationContext,
    ) -> str:
        state = self._state.get_state(conversation_id)
        pending = state.pending

        if state.pending_state == PendingState.AWAITING_CONFIRMATION and isinstance(
            pending, PendingConfirmation
        ):
            snapshot = self._state.snapshot_pending(conversation_id)
            # Cleared first so the replayed handler may set a new pending state
            self._state.clear_pending_state(conversation_id)
            try:
                return await self._dispatch(conversation_id, pending.classification, context)
            except Exception:
                self._state.restore_pending(conversation_id, snapshot)
                raise

        if state.pending_state == PendingState.AWAITING_DUPLICATE_CONFIRMATION and isinstance(
            pending, PendingDuplicate
        ):
            result = self._tasks.create(pending.day, pending.entities)
            self._state.clear_pending_state(conversation_id)
            return self._with_day(result, pending.day)

        return messages.NOTHING_TO_CONFIRM

    async def _handle_rejection(self, conversation_id, classified, context) -> str:
        state = self._state.get_state(conversation_id)

        if state.pending_state == PendingState.AWAITING_DUPLICATE_CONFIRMATION:
            self._state.clear_pending_state(conversation_id)
            return messages.TASK_DUPLICATE_CANCELLED
        if state.pending_state != PendingState.IDLE:
            self._state.clear_pending_state(conversation_id)
            return messages.ACTION_CANCELLED
        return messages.NOTHING_TO_CANCEL

    # ------------------------------------------------------------------
    # Habit handlers
    # ------------------------------------------------------------------

    def _resolve_habit(self, entities: ExtractedEntities, context: ConversationContext) -> Habit | None:
        """Explicit reference first; otherwise the only habit today, or the only one in this slot."""
        if entities.habit_id:
            return self._habits.find(entities.habit_id)

        today = date.fromisoformat(context.current_date)
        todays = self._habits.get_for_day(weekday_key(today))
        if len(todays) == 1:
            return todays[0]

        in_slot = self._habits.get_for_day_and_slot(weekday_key(today), context.current_slot)
        if len(in_slot) == 1:
            return in_slot[0]
        return None

    def _unresolved_habit_reply(self, entities: ExtractedEntities) -> str:
        if entities.habit_id:
            return messages.habit_not_found(entities.habit_id)
        return messages.HABIT_UNRESOLVED

    async def _handle_habit_done(self, conversation_id, classified, context) -> str:
        habit = self._resolve_habit(classified.entities, context)
        if habit is None:
            return self._unresolved_habit_reply(classified.entities)

        self._storage.update_habit_status(context.current_date, habit.id, Status.DONE)
        return messages.habit_done(habit.name)

    async def _handle_habit_skipped(self, conversation_id, classified, context) -> str:
        entities = classified.entities
        habit = self._resolve_habit(entities, context)
        if habit is None:
            return self._unresolved_habit_reply(entities)

        if habit.requires_justification and not entities.justification:
            self._state.set_state(
                conversation_id,
                pending_state=PendingState.AWAITING_JUSTIFICATION,
                pending=PendingJustification(habit_id=habit.id, day=context.current_date),
                pending_action=f"تخطي {habit.name}",
            )
            return messages.HABIT_ASK_JUSTIFICATION

        self._storage.update_habit_status(
            context.current_date, habit.id, Status.SKIPPED, justification=entities.justification,
        )
        return messages.habit_skipped(habit.name)

    async def _handle_habit_list(self, conversation_id, classified, context) -> str:
        today = date.fromisoformat(context.current_date)
        habits = self._habits.get_for_day(weekday_key(today))
        return summaries.render_habit_list(habits, self._storage.get_day(context.current_date))

    # ------------------------------------------------------------------
    # Task handlers
    # ------------------------------------------------------------------

    def _with_day(self, result: TaskResult, day: str) -> str:
        """Append the day to a success message when it isn't today."""
        today = self._today()
        if not result.success or day == today.isoformat():
            return result.message
        return f"{result.message} ({format_display_date(day, today)})"

    def _resolve_task_ref(self, entities: ExtractedEntities, day: str) -> str | None:
        """Task ID from entities, falling back to the best title match on that day."""
        if entities.task_id:
            return entities.task_id
        if not entities.task_title:
            return None

        wanted = entities.task_title.strip().lower()
        best_id, best_score = None, 0.0
        for task in self._tasks.list_for_day(day):
            if task.status == Status.SHIFTED:
                continue
            score = 1.0 if task.title.strip().lower() == wanted else similarity(wanted, task.title)
            if score > best_score:
                best_id, best_score = task.id, score
        return best_id if best_score >= _TITLE_MATCH_THRESHOLD else None

    def _task_day(self, entities: ExtractedEntities, context: ConversationContext) -> str:
        """Day a new task goes on: its target date when given and not in the past."""
        target = entities.target_date
        if target and target >= context.current_date:
            return target
        return context.current_date

    async def _handle_task_create(self, conversation_id, classified, context) -> str:
        entities = classified.entities
        if not entities.task_title:
            return messages.TASK_MISSING_TITLE

        day = self._task_day(entities, context)
        similar = self._tasks.find_similar_in_week(day, entities.task_title)
        if similar is not None:
            self._state.set_state(
                conversation_id,
                pending_state=PendingState.AWAITING_DUPLICATE_CONFIRMATION,
                pending=PendingDuplicate(
                    entities=entities,
                    day=day,
                    match_title=similar.task.title,
                    match_date=similar.date,
                ),
                pending_action=f'إضافة مهمة "{entities.task_title}"',
            )
            when = format_display_date(similar.date, self._today())
            return messages.task_duplicate_prompt(similar.task.title, when)

        return self._with_day(self._tasks.create(day, entities), day)

    async def _handle_task_complete(self, conversation_id, classified, context) -> str:
        ref = self._resolve_task_ref(classified.entities, context.current_date)
        if ref is None:
            return messages.TASK_MISSING_REFERENCE
        return self._tasks.complete(context.current_date, ref).message

    async def _handle_task_skip(self, conversation_id, classified, context) -> str:
        ref = self._resolve_task_ref(classified.entities, context.current_date)
        if ref is None:
            return messages.TASK_MISSING_REFERENCE
        result = self._tasks.skip(context.current_date, ref, classified.entities.justification)
        return result.message

    async def _handle_task_shift(self, conversation_id, classified, context) -> str:
        entities = classified.entities
        ref = self._resolve_task_ref(entities, context.current_date)
        if ref is None:
            return messages.TASK_MISSING_REFERENCE

        if entities.target_date:
            result = self._tasks.shift(
                context.current_date, ref, entities.target_date, reason=entities.justification,
            )
            return self._with_day(result, entities.target_date)

        task = self._tasks.get_by_id(context.current_date, ref)
        if task is None:
            return messages.task_not_found(ref)

        self._state.set_state(
            conversation_id,
            pending_state=PendingState.AWAITING_SHIFT_DATE,
            pending=PendingShiftDate(task_id=task.id, day=context.current_date),
            pending_action=f'نقل "{task.title}"',
        )
        return messages.TASK_ASK_SHIFT_DATE

    async def _handle_task_update(self, conversation_id, classified, context) -> str:
        ref = classified.entities.task_id
        if ref is None:
            return messages.TASK_MISSING_REFERENCE
        return self._tasks.update(context.current_date, ref, classified.entities).message

    async def _handle_task_delete(self, conversation_id, classified, context) -> str:
        ref = self._resolve_task_ref(classified.entities, context.current_date)
        if ref is None:
            return messages.TASK_MISSING_REFERENCE
        return self._tasks.delete(context.current_date, ref).message

    async def _handle_task_list(self, conversation_id, classified, context) -> str:
        return summaries.render_task_list(self._storage.get_day(context.current_date))

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def today_summary(self) -> str:
        """Daily summary for today; also used by the /today command."""
        today = self._today()
        day = today.isoformat()
        habits = self._habits.get_for_day(weekday_key(today))
        return summaries.render_daily_summary(day, habits, self._storage.get_day(day))

    async def _handle_daily_summary(self, conversation_id, classified, context) -> str:
        return self.today_summary()

    async def _handle_weekly_summary(self, conversation_id, classified, context) -> str:
        today = date.fromisoformat(context.current_date)
        days = []
        for offset in range(_WEEKLY_DAYS - 1, -1, -1):
            day = today - timedelta(days=offset)
            days.append((
                day.isoformat(),
                self._habits.get_for_day(weekday_key(day)),
                self._storage.get_day(day.isoformat()),
            ))
        return summaries.render_weekly_summary(days)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def _receive_image(self, conversation_id: str, media_handle: object) -> str:
        data = await self._messaging.download_media(media_handle)

        today = self._today()
        day = today.isoformat()
        folder = self._media_dir / day
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / f"{uuid.uuid4().hex}.jpg"
        path.write_bytes(data)
        logger.info("Saved image from %s to %s", conversation_id, path)

        options = [
            ImageTagOption(kind="habit", item_id=h.id, label=h.name)
            for h in self._habits.get_for_day(weekday_key(today))
        ]
        options += [
            ImageTagOption(kind="task", item_id=t.id, label=t.title)
            for t in self._storage.get_day(day).tasks
            if t.status != Status.SHIFTED
        ]
        if not options:
            return messages.IMAGE_NO_ITEMS

        self._state.set_state(
            conversation_id,
            pending_state=PendingState.AWAITING_IMAGE_TAG,
            pending=PendingImageTag(image_path=str(path), day=day, options=tuple(options)),
            pending_action="ربط صورة",
        )
        lines = [messages.IMAGE_ASK_TAG]
        lines += [f"{i}. {opt.label}" for i, opt in enumerate(options, start=1)]
        return "\n".join(lines)

    def _tag_image(self, conversation_id: str, pending: PendingImageTag, option: int) -> str:
        if not 1 <= option <= len(pending.options):
            return messages.IMAGE_INVALID_OPTION

        chosen = pending.options[option - 1]
        attached = self._storage.add_image(pending.day, chosen.kind, chosen.item_id, pending.image_path)
        self._state.clear_pending_state(conversation_id)
        if not attached:
            return messages.task_not_found(chosen.item_id)
        return messages.IMAGE_TAGGED

    async def _handle_image_tag_response(self, conversation_id, classified, context) -> str:
        state = self._state.get_state(conversation_id)
        pending = state.pending
        if state.pending_state != PendingState.AWAITING_IMAGE_TAG or not isinstance(
            pending, PendingImageTag
        ):
            return messages.IMAGE_NOTHING_PENDING

        option = classified.entities.selected_option
        if option is None:
            return messages.IMAGE_INVALID_OPTION
        return self._tag_image(conversation_id, pending, option)
