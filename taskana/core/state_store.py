"""
Taskana — Conversation State Store.

Per-conversation memory of what the bot is waiting for (a justification, a
shift date, a yes/no) plus the last few turns of history. Everything lives
in a process-lifetime dict; nothing is persisted.

Pending data expires lazily: it is checked whenever the state is read, so
no background timer is needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Callable, Literal, Union

if TYPE_CHECKING:
    from taskana.core.classifier import ClassifiedIntent, ExtractedEntities

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY = timedelta(minutes=5)
DEFAULT_MAX_MESSAGES = 10


class PendingState(str, Enum):
    IDLE = "idle"
    AWAITING_JUSTIFICATION = "awaiting_justification"
    AWAITING_SHIFT_DATE = "awaiting_shift_date"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    AWAITING_IMAGE_TAG = "awaiting_image_tag"
    AWAITING_DUPLICATE_CONFIRMATION = "awaiting_duplicate_confirmation"


# ---------------------------------------------------------------------------
# Pending payloads (one shape per pending state)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PendingJustification:
    """A habit skip waiting for its reason."""

    habit_id: str
    day: str


@dataclass(frozen=True)
class PendingShiftDate:
    """A task shift waiting for its target date."""

    task_id: str
    day: str


@dataclass(frozen=True)
class PendingConfirmation:
    """A medium-confidence action waiting for yes/no."""

    classification: ClassifiedIntent


@dataclass(frozen=True)
class PendingDuplicate:
    """A task creation held back because a similar task already exists."""

    entities: ExtractedEntities
    day: str
    match_title: str
    match_date: str


@dataclass(frozen=True)
class ImageTagOption:
    kind: Literal["habit", "task"]
    item_id: str
    label: str


@dataclass(frozen=True)
class PendingImageTag:
    """A saved photo waiting to be attached to one of `options` (1-based)."""

    image_path: str
    day: str
    options: tuple[ImageTagOption, ...]


PendingPayload = Union[
    PendingJustification,
    PendingShiftDate,
    PendingConfirmation,
    PendingDuplicate,
    PendingImageTag,
]


# ---------------------------------------------------------------------------
# Conversation state
# ---------------------------------------------------------------------------

@dataclass
class RecentMessage:
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime


@dataclass
class ConversationState:
    conversation_id: str
    last_activity: datetime
    pending_state: PendingState = PendingState.IDLE
    pending: PendingPayload | None = None
    pending_action: str | None = None
    pending_set_at: datetime | None = None
    recent_messages: list[RecentMessage] = field(default_factory=list)

    @property
    def pending_reference(self) -> str | None:
        """Short human-readable rendering of the pending payload (for prompts/logs)."""
        p = self.pending
        if p is None:
            return None
        if isinstance(p, PendingJustification):
            return p.habit_id
        if isinstance(p, PendingShiftDate):
            return p.task_id
        if isinstance(p, PendingConfirmation):
            return p.classification.intent.value
        if isinstance(p, PendingDuplicate):
            return p.entities.task_title or ""
        return p.image_path


@dataclass(frozen=True)
class PendingSnapshot:
    """The pending fields of a state at a point in time."""

    pending_state: PendingState
    pending: PendingPayload | None
    pending_action: str | None
    pending_set_at: datetime | None


class StateStore:
    """In-memory map of conversation ID → ConversationState."""

    def __init__(
        self,
        expiry: timedelta = DEFAULT_EXPIRY,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._expiry = expiry
        self._max_messages = max_messages
        self._clock = clock
        self._states: dict[str, ConversationState] = {}

    def _is_expired(self, state: ConversationState, now: datetime) -> bool:
        if state.pending_state == PendingState.IDLE or state.pending_set_at is None:
            return False
        return now - state.pending_set_at > self._expiry

    def get_state(self, conversation_id: str) -> ConversationState:
        """Return the conversation's state, creating it on first use.

        Expired pending data is reset to idle before the state is returned.
        """
        now = self._clock()
        state = self._states.get(conversation_id)

        if state is None:
            state = ConversationState(conversation_id=conversation_id, last_activity=now)
            self._states[conversation_id] = state
            logger.debug("Created conversation state for %s", conversation_id)
            return state

        if self._is_expired(state, now):
            logger.info(
                "Pending state %s expired for %s",
                state.pending_state.value, conversation_id,
            )
            self.clear_pending_state(conversation_id)

        state.last_activity = now
        return state

    def set_state(
        self,
        conversation_id: str,
        pending_state: PendingState | None = None,
        pending: PendingPayload | None = None,
        pending_action: str | None = None,
    ) -> ConversationState:
        """Partially update the pending fields. Arguments left as None are kept."""
        state = self.get_state(conversation_id)
        now = self._clock()

        if pending_state is not None:
            state.pending_state = pending_state
            state.pending_set_at = None if pending_state == PendingState.IDLE else now
        if pending is not None:
            state.pending = pending
        if pending_action is not None:
            state.pending_action = pending_action

        state.last_activity = now
        logger.debug(
            "State for %s: %s (%s)",
            conversation_id, state.pending_state.value, state.pending_reference,
        )
        return state

    def clear_pending_state(self, conversation_id: str) -> None:
        """Reset pending fields to idle; history is untouched."""
        state = self._states.get(conversation_id)
        if state is None:
            return
        state.pending_state = PendingState.IDLE
        state.pending = None
        state.pending_action = None
        state.pending_set_at = None
        state.last_activity = self._clock()

    def has_pending_state(self, conversation_id: str) -> bool:
        state = self._states.get(conversation_id)
        if state is None or state.pending_state == PendingState.IDLE:
            return False
        return not self._is_expired(state, self._clock())

    def snapshot_pending(self, conversation_id: str) -> PendingSnapshot:
        state = self.get_state(conversation_id)
        return PendingSnapshot(
            pending_state=state.pending_state,
            pending=state.pending,
            pending_action=state.pending_action,
            pending_set_at=state.pending_set_at,
        )

    def restore_pending(self, conversation_id: str, snapshot: PendingSnapshot) -> None:
        """Put back pending fields captured by snapshot_pending()."""
        state = self.get_state(conversation_id)
        state.pending_state = snapshot.pending_state
        state.pending = snapshot.pending
        state.pending_action = snapshot.pending_action
        state.pending_set_at = snapshot.pending_set_at

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_message(
        self,
        conversation_id: str,
        role: Literal["user", "assistant"],
        content: str,
    ) -> None:
        """Append a turn, keeping only the most recent ones."""
        state = self.get_state(conversation_id)
        now = self._clock()
        state.recent_messages.append(RecentMessage(role=role, content=content, timestamp=now))
        if len(state.recent_messages) > self._max_messages:
            del state.recent_messages[: -self._max_messages]
        state.last_activity = now

    def get_recent_messages(self, conversation_id: str) -> list[RecentMessage]:
        return [replace(m) for m in self.get_state(conversation_id).recent_messages]

    def clear_all(self) -> None:
        self._states.clear()
