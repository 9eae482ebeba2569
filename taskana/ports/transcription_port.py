"""Transcription port — abstract speech-to-text interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass
class TranscriptionResult:
    text: str
    confidence: float
    success: bool
    language: str = ""
    duration: float | None = None
    error: str | None = None


class TranscriberPort(Protocol):
    """Abstract transcription interface used by core modules.

    Implementations report failure through TranscriptionResult.success
    instead of raising.
    """

    async def transcribe(self, audio: bytes) -> TranscriptionResult: ...
