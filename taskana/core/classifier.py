"""
Taskana — Intent Classifier.

Brain of the conversation: turns an Arabic/English message plus the current
conversation context into one intent from a closed vocabulary, with a
confidence score and normalized entities.

The LLM output is untrusted. This module clamps confidence, maps stray
intent names onto the vocabulary, retries low-confidence answers on the
capable model tier, and never raises: any failure becomes an "unclear"
result with confidence 0.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from taskana.core.llm import complete
from taskana.core.normalizer import (
    normalize_task_reference,
    normalize_time_slot,
    resolve_relative_date,
)
from taskana.core.state_store import PendingState, RecentMessage
from taskana.data.models import TimeSlot

logger = logging.getLogger(__name__)

DEFAULT_ESCALATION_THRESHOLD = 0.6
CLASSIFICATION_FAILED_QUESTION = "عذراً، حدث خطأ. ممكن تعيد الرسالة؟"


# ---------------------------------------------------------------------------
# Shared JSON contract
# ---------------------------------------------------------------------------

class IntentType(str, Enum):
    GREETING = "greeting"
    HELP = "help"
    HABIT_DONE = "habit_done"
    HABIT_SKIPPED = "habit_skipped"
    HABIT_LIST = "habit_list"
    HABIT_STATUS = "habit_status"
    TASK_CREATE = "task_create"
    TASK_COMPLETE = "task_complete"
    TASK_SKIP = "task_skip"
    TASK_SHIFT = "task_shift"
    TASK_UPDATE = "task_update"
    TASK_DELETE = "task_delete"
    TASK_LIST = "task_list"
    DAILY_SUMMARY = "daily_summary"
    WEEKLY_SUMMARY = "weekly_summary"
    CONFIRMATION = "confirmation"
    REJECTION = "rejection"
    IMAGE_TAG_RESPONSE = "image_tag_response"
    UNCLEAR = "unclear"


# Intents that change stored data
MUTATING_INTENTS: frozenset[IntentType] = frozenset({
    IntentType.HABIT_DONE,
    IntentType.HABIT_SKIPPED,
    IntentType.TASK_CREATE,
    IntentType.TASK_COMPLETE,
    IntentType.TASK_SKIP,
    IntentType.TASK_SHIFT,
    IntentType.TASK_UPDATE,
    IntentType.TASK_DELETE,
})

_INTENT_SYNONYMS: dict[str, IntentType] = {
    "greet": IntentType.GREETING,
    "hi": IntentType.GREETING,
    "hello": IntentType.GREETING,
    "done": IntentType.HABIT_DONE,
    "complete": IntentType.TASK_COMPLETE,
    "skip": IntentType.HABIT_SKIPPED,
    "shift": IntentType.TASK_SHIFT,
    "move": IntentType.TASK_SHIFT,
    "create": IntentType.TASK_CREATE,
    "add": IntentType.TASK_CREATE,
    "new": IntentType.TASK_CREATE,
    "delete": IntentType.TASK_DELETE,
    "remove": IntentType.TASK_DELETE,
    "list": IntentType.TASK_LIST,
    "tasks": IntentType.TASK_LIST,
    "summary": IntentType.DAILY_SUMMARY,
    "yes": IntentType.CONFIRMATION,
    "confirm": IntentType.CONFIRMATION,
    "no": IntentType.REJECTION,
    "cancel": IntentType.REJECTION,
}


class ExtractedEntities(BaseModel):
    """Sparse entities pulled out of a message.

    The model answers in camelCase (``taskTitle``); snake_case is accepted too.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    habit_id: str | None = None
    task_id: str | None = None
    task_title: str | None = None
    task_description: str | None = None
    time_slot: TimeSlot | None = None
    target_date: str | None = None
    raw_date_expression: str | None = None
    justification: str | None = None
    selected_option: int | None = None
    additional_context: str | None = None

    @field_validator("task_id", "habit_id", mode="before")
    @classmethod
    def coerce_reference(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v))
        return v

    @field_validator("time_slot", mode="before")
    @classmethod
    def coerce_time_slot(cls, v: Any) -> Any:
        if v is None or isinstance(v, TimeSlot):
            return v
        return normalize_time_slot(str(v))

    @field_validator(
        "habit_id", "task_id", "task_title", "task_description",
        "target_date", "raw_date_expression", "justification", "additional_context",
    )
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class ClassifiedIntent(BaseModel):
    """Result of classifying one message.

    JSON example (as produced by the model):
    {
        "intent": "task_create",
        "confidence": 0.92,
        "entities": {"taskTitle": "اشتري خضار", "timeSlot": "after_dhuhr"},
        "followUpQuestion": null
    }
    """

    model_config = ConfigDict(frozen=True)

    intent: IntentType
    confidence: float
    entities: ExtractedEntities = ExtractedEntities()
    follow_up_question: str | None = None
    was_escalated: bool = False
    raw_response: str | None = None


@dataclass
class ConversationContext:
    """What the classifier is told about the conversation for one turn."""

    conversation_id: str
    current_date: str                  # ISO date
    current_slot: TimeSlot
    pending_state: PendingState = PendingState.IDLE
    pending_reference: str | None = None
    pending_action: str | None = None
    active_habits: list[str] = field(default_factory=list)
    today_tasks: list[str] = field(default_factory=list)
    recent_messages: list[RecentMessage] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are an intent classifier for "Taskana", a chat-based habit and task manager.
Analyze the user's message (Arabic, English, or a mix) and classify it into one intent with extracted entities.

**Islamic time slots** (the app schedules by prayer times, not clock times):
- after_fajr (بعد الفجر)
- before_dhuhr (قبل الظهر)
- after_dhuhr (بعد الظهر / بعد الضهر)
- before_asr (قبل العصر)
- after_asr (بعد العصر)
- before_maghrib (قبل المغرب)
- after_maghrib (بعد المغرب)
- before_isha (قبل العشاء)
- after_isha (بعد العشاء)

**Arabic time expressions:**
- الفجر / فجر = fajr; الظهر / الضهر / ظهر = dhuhr; العصر = asr; المغرب = maghrib; العشاء = isha
- الصبح = after_fajr
- بعد / قبل = after / before

**Arabic date expressions:**
- النهارده / النهاردة / اليوم = today
- بكرة / بكره / غدا = tomorrow
- بعد بكره / بعد غد = day after tomorrow
- أمبارح / امبارح / أمس = yesterday
- Days: الأحد (Sunday), الإثنين/اتنين (Monday), الثلاثاء/تلات (Tuesday), الأربعاء/أربع (Wednesday), الخميس (Thursday), الجمعة (Friday), السبت (Saturday)

**Valid intents:**
- greeting: "مرحبا", "أهلا", "hello", "hi"
- help: "مساعدة", "help", "ايه اللي تقدر تعمله"
- habit_done: marking a habit complete, e.g. "خلصت", "done", "تم", "✅"
- habit_skipped: skipping a habit, e.g. "skip", "متعملتش", "مقدرتش"
- habit_list: listing habits, e.g. "عاداتي", "habits"
- habit_status: asking how today's habits are going
- task_create: "ضيف تاسك", "add task", "مهمة جديدة"
- task_complete: "خلصت 1", "done 1", "تم 2"
- task_skip: skipping a task
- task_shift: moving a task to another day, e.g. "نقل", "shift", "أجل"
- task_update: changing a task's title, description or time slot
- task_delete: "احذف", "delete", "امسح"
- task_list: "مهامي", "tasks", "المهام"
- daily_summary: "ملخص", "summary"
- weekly_summary: "ملخص الأسبوع", "weekly summary"
- confirmation: "أيوه", "نعم", "yes", "ok", "صح"
- rejection: "لا", "لأ", "no", "cancel"
- image_tag_response: picking a numbered option to tag an image ("1", "2")
- unclear: cannot determine the intent

**Response format** (JSON only, no markdown, no explanation):
{"intent": "<intent>", "confidence": <0.0-1.0>, "entities": {"habitId": "...", "taskId": "...", "taskTitle": "...", "taskDescription": "...", "timeSlot": "...", "targetDate": "YYYY-MM-DD", "rawDateExpression": "...", "justification": "...", "selectedOption": <number>, "additionalContext": "..."}, "followUpQuestion": "..."}

**Rules:**
- Omit entities you did not find.
- Set confidence to how certain you are.
- If the intent is unclear, use "unclear" and suggest a followUpQuestion in Egyptian Arabic.
- Task IDs may be numbers (1, 2, 3) or formatted (t-001).
- For task_create, always try to extract taskTitle and timeSlot.
- For task_shift, try to extract taskId and targetDate or rawDateExpression (keep the user's words in rawDateExpression).
- Use the context (active habits, today's tasks, recent conversation) to resolve references.
- If the user says "done" without naming a habit or task, use the context to work out what is pending.
- Match habit names or task titles in the message against the context.
"""

_STATE_INSTRUCTIONS: dict[PendingState, tuple[str, ...]] = {
    PendingState.AWAITING_JUSTIFICATION: (
        "The user is expected to give a reason for skipping a habit.",
        "Treat any text as habit_skipped with a justification entity.",
    ),
    PendingState.AWAITING_SHIFT_DATE: (
        "The user is expected to give a date to move a task to.",
        "Look for date expressions and treat the message as task_shift with the date.",
    ),
    PendingState.AWAITING_CONFIRMATION: (
        "The user is expected to confirm or reject the pending action.",
        "Look for confirmation words (yes, ok, نعم, أيوه) or rejection words (no, لا, cancel).",
    ),
    PendingState.AWAITING_DUPLICATE_CONFIRMATION: (
        "The user was told a similar task already exists and asked whether to add it anyway.",
        "Look for confirmation words (yes, ok, نعم, أيوه) or rejection words (no, لا, cancel).",
    ),
    PendingState.AWAITING_IMAGE_TAG: (
        "The user is expected to pick a number to tag an image to a habit or task.",
        "A number should be treated as image_tag_response with selectedOption.",
    ),
}

# History turns included in the prompt
_PROMPT_HISTORY = 5


def build_classification_prompt(message: str, context: ConversationContext) -> str:
    """Render the per-turn user prompt: context sections, then the message."""
    parts: list[str] = [
        "## Current Context",
        f"- Date: {context.current_date}",
        f"- Current Time Slot: {context.current_slot.value}",
        f"- Pending State: {context.pending_state.value}",
    ]
    if context.pending_reference:
        parts.append(f"- Pending Reference: {context.pending_reference}")
    if context.pending_action:
        parts.append(f"- Pending Action: {context.pending_action}")
    parts.append("")

    parts.append("## Today's Active Habits")
    if context.active_habits:
        parts.extend(f"{i}. {name}" for i, name in enumerate(context.active_habits, start=1))
    else:
        parts.append("No active habits for today.")
    parts.append("")

    parts.append("## Today's Tasks")
    if context.today_tasks:
        parts.extend(f"- {task}" for task in context.today_tasks)
    else:
        parts.append("No tasks for today.")
    parts.append("")

    if context.recent_messages:
        parts.append("## Recent Conversation")
        for msg in context.recent_messages[-_PROMPT_HISTORY:]:
            role = "User" if msg.role == "user" else "Assistant"
            parts.append(f"{role}: {msg.content}")
        parts.append("")

    instructions = _STATE_INSTRUCTIONS.get(context.pending_state)
    if instructions:
        parts.append("## Special Instructions")
        parts.extend(instructions)
        parts.append("")

    parts.append("## User Message")
    parts.append(f'"{message}"')
    parts.append("")
    parts.append("Classify this message and extract entities. Respond with JSON only.")
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from the LLM's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text.removeprefix("```json")
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


def normalize_intent(raw: object) -> IntentType:
    """Map the model's intent string onto the vocabulary; unknown → unclear."""
    if not isinstance(raw, str):
        return IntentType.UNCLEAR
    key = raw.strip().lower()
    try:
        return IntentType(key)
    except ValueError:
        pass
    mapped = _INTENT_SYNONYMS.get(key)
    if mapped is None:
        logger.warning("LLM returned unknown intent: '%s'", raw)
        return IntentType.UNCLEAR
    return mapped


def clamp_confidence(raw: object) -> float:
    """Coerce to a float in [0, 1]. Missing or non-numeric values count as 0.5."""
    if raw is None or isinstance(raw, bool):
        return 0.5
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.5
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def _parse_entities(raw: object) -> ExtractedEntities:
    """Validate entities, dropping any field the model got wrong instead of failing."""
    if not isinstance(raw, dict):
        return ExtractedEntities()

    data = {k: v for k, v in raw.items() if v is not None}
    # Each retry removes at least one key, so this terminates
    while True:
        try:
            return ExtractedEntities.model_validate(data)
        except ValidationError as exc:
            bad = {err["loc"][0] for err in exc.errors() if err["loc"]}
            bad &= set(data)
            if not bad:
                logger.warning("Discarding unusable entities: %s", raw)
                return ExtractedEntities()
            logger.debug("Dropping invalid entity fields: %s", sorted(map(str, bad)))
            for key in bad:
                data.pop(key)


def parse_classification(raw_text: str) -> ClassifiedIntent:
    """Parse the model's JSON answer. Raises ValueError if it isn't a JSON object."""
    cleaned = _clean_llm_response(raw_text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ValueError(f"LLM response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"LLM response is a {type(data).__name__}, expected an object")

    follow_up = data.get("followUpQuestion", data.get("follow_up_question"))
    return ClassifiedIntent(
        intent=normalize_intent(data.get("intent")),
        confidence=clamp_confidence(data.get("confidence")),
        entities=_parse_entities(data.get("entities")),
        follow_up_question=follow_up if isinstance(follow_up, str) and follow_up.strip() else None,
        raw_response=cleaned,
    )


def normalize_entities(entities: ExtractedEntities, current_date: str) -> ExtractedEntities:
    """Canonicalize the target date and task reference against today's date."""
    updates: dict[str, Any] = {}

    if entities.target_date:
        resolved = resolve_relative_date(entities.target_date, current_date)
        if resolved != entities.target_date:
            updates["target_date"] = resolved
    if entities.raw_date_expression and not (updates.get("target_date", entities.target_date)):
        resolved = resolve_relative_date(entities.raw_date_expression, current_date)
        if resolved:
            updates["target_date"] = resolved

    if entities.task_id:
        updates["task_id"] = normalize_task_reference(entities.task_id)

    return entities.model_copy(update=updates) if updates else entities


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class IntentClassifier:
    """Two-tier LLM intent classifier."""

    def __init__(
        self,
        escalation_threshold: float | None = None,
        max_tokens: int = 500,
    ) -> None:
        if escalation_threshold is None:
            from taskana.config import settings
            escalation_threshold = settings.ESCALATION_THRESHOLD

        self._escalation_threshold = escalation_threshold
        self._max_tokens = max_tokens

    async def _call(self, message: str, context: ConversationContext, tier: str) -> ClassifiedIntent:
        user_prompt = build_classification_prompt(message, context)
        raw = await complete(_SYSTEM_PROMPT, user_prompt, max_tokens=self._max_tokens, tier=tier)
        logger.debug("LLM %s-tier response: %s", tier, raw)
        return parse_classification(raw or "")

    async def classify(self, message: str, context: ConversationContext) -> ClassifiedIntent:
        """Classify a message. Never raises."""
        try:
            result = await self._call(message, context, "fast")
        except Exception:
            logger.exception("Classification failed for message: %s", message[:80])
            return ClassifiedIntent(
                intent=IntentType.UNCLEAR,
                confidence=0.0,
                follow_up_question=CLASSIFICATION_FAILED_QUESTION,
            )

        if result.confidence < self._escalation_threshold and result.intent != IntentType.GREETING:
            logger.debug(
                "Escalating to capable tier: %s at %.2f",
                result.intent.value, result.confidence,
            )
            try:
                escalated = await self._call(message, context, "capable")
            except Exception as exc:
                logger.warning("Escalation failed, keeping fast-tier result: %s", exc)
            else:
                if escalated.confidence > result.confidence:
                    result = escalated.model_copy(update={"was_escalated": True})

        try:
            entities = normalize_entities(result.entities, context.current_date)
        except Exception:
            logger.exception("Entity normalization failed for message: %s", message[:80])
            return ClassifiedIntent(
                intent=IntentType.UNCLEAR,
                confidence=0.0,
                follow_up_question=CLASSIFICATION_FAILED_QUESTION,
            )
        result = result.model_copy(update={"entities": entities})
        logger.debug(
            "Classified as %s (confidence %.2f%s)",
            result.intent.value, result.confidence,
            ", escalated" if result.was_escalated else "",
        )
        return result
