"""Messaging port — abstract interface for talking to the user.

Core modules depend on this protocol, never on a specific chat provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class MessagingError(Exception):
    """Raised when any messaging provider operation fails."""


@dataclass
class SentMessage:
    success: bool
    message_id: str = ""


class MessagingPort(Protocol):
    """Abstract messaging interface used by core modules."""

    async def send_text(self, conversation_id: str, text: str) -> SentMessage: ...

    async def download_media(self, media_handle: object) -> bytes: ...
