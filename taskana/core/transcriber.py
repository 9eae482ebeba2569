"""
Taskana — Audio Transcriber.

Voice notes are the fastest way to capture a task. After transcription the
text flows into the same router path as typed messages.

This is the only module that talks to OpenAI directly; it uses Whisper
exclusively. Classification goes through taskana.core.llm.
"""

from __future__ import annotations

import logging
from typing import Any

from openai import AsyncOpenAI

from taskana.ports.transcription_port import TranscriptionResult

logger = logging.getLogger(__name__)

# Used when Whisper returns no per-segment log-probabilities
DEFAULT_CONFIDENCE = 0.7


def confidence_from_segments(segments: list[Any] | None) -> float:
    """Map Whisper's average segment log-probability onto [0.1, 1].

    avg_logprob is typically within [-1, 0]: 0 → 1.0, -0.5 → 0.7, -1 → 0.4.
    """
    if not segments:
        return DEFAULT_CONFIDENCE

    logprobs = []
    for seg in segments:
        value = seg.get("avg_logprob") if isinstance(seg, dict) else getattr(seg, "avg_logprob", None)
        logprobs.append(-0.5 if value is None else float(value))

    avg = sum(logprobs) / len(logprobs)
    return max(0.1, min(1.0, 1 + avg * 0.6))


class WhisperTranscriber:
    """TranscriberPort over the OpenAI Whisper API."""

    def __init__(
        self,
        api_key: str | None = None,
        language: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        if api_key is None or language is None:
            from taskana.config import settings
            api_key = settings.OPENAI_API_KEY if api_key is None else api_key
            language = settings.WHISPER_LANGUAGE if language is None else language

        self._api_key = api_key
        self._language = language
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        # Created lazily so a missing OPENAI_API_KEY only matters once a voice note arrives
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def transcribe(self, audio: bytes) -> TranscriptionResult:
        """Transcribe an OGG voice note. Never raises; failures set success=False."""
        try:
            response = await self._get_client().audio.transcriptions.create(
                model="whisper-1",
                file=("audio.ogg", audio, "audio/ogg"),
                language=self._language,
                temperature=0,
                response_format="verbose_json",
            )
        except Exception as exc:
            logger.error("Whisper transcription failed: %s", exc)
            return TranscriptionResult(
                text="",
                confidence=0.0,
                success=False,
                language=self._language,
                error=str(exc),
            )

        text = (response.text or "").strip()
        confidence = confidence_from_segments(getattr(response, "segments", None))
        logger.info("Transcribed %d chars (confidence %.2f)", len(text), confidence)

        return TranscriptionResult(
            text=text,
            confidence=confidence,
            success=bool(text),
            language=getattr(response, "language", None) or self._language,
            duration=getattr(response, "duration", None),
            error=None if text else "Empty transcription",
        )
