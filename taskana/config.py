"""
Taskana — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from taskana/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_CLOCK_RE = re.compile(r"^\d{1,2}:\d{2}$")


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str
    ALLOWED_USER_IDS: list[int] = []

    # LLM: provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""            # fast tier; empty → smart default per provider
    LLM_MODEL_CAPABLE: str = ""    # escalation tier; empty → smart default per provider
    LLM_API_KEY: str

    # Audio: OpenAI Whisper (transcription only)
    OPENAI_API_KEY: str = ""
    WHISPER_LANGUAGE: str = "ar"

    # Storage
    DATABASE_PATH: str = "data/taskana.db"
    HABITS_DIR: str = "data/habits"
    MEDIA_DIR: str = "data/media"

    # Prayer schedule (local clock times, HH:MM)
    TIMEZONE: str = "Africa/Cairo"
    FAJR_TIME: str = "04:45"
    DHUHR_TIME: str = "11:55"
    ASR_TIME: str = "15:10"
    MAGHRIB_TIME: str = "17:45"
    ISHA_TIME: str = "19:05"
    BEFORE_SLOT_OFFSET_MINUTES: int = 30

    # Conversation tuning
    CONFIDENCE_LOW: float = 0.3
    CONFIDENCE_MEDIUM: float = 0.6
    CONFIDENCE_HIGH: float = 0.85
    ESCALATION_THRESHOLD: float = 0.6
    DUPLICATE_SIMILARITY: float = 0.7
    PENDING_EXPIRY_MINUTES: int = 5
    MAX_RECENT_MESSAGES: int = 10

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("FAJR_TIME", "DHUHR_TIME", "ASR_TIME", "MAGHRIB_TIME", "ISHA_TIME")
    @classmethod
    def check_clock(cls, v: str) -> str:
        v = v.strip()
        if not _CLOCK_RE.match(v):
            raise ValueError(f"expected HH:MM, got {v!r}")
        return v

    @field_validator(
        "CONFIDENCE_LOW", "CONFIDENCE_MEDIUM", "CONFIDENCE_HIGH",
        "ESCALATION_THRESHOLD", "DUPLICATE_SIMILARITY",
    )
    @classmethod
    def check_ratio(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {v}")
        return v


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    llm_api_key = os.getenv("LLM_API_KEY", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    if not llm_api_key or llm_api_key.startswith("your-"):
        print("ERROR: LLM_API_KEY is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    # Optional keys fall back to the model defaults when unset
    optional = {
        name: os.environ[name]
        for name in Settings.model_fields
        if name not in ("TELEGRAM_BOT_TOKEN", "LLM_API_KEY") and name in os.environ
    }

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        LLM_API_KEY=llm_api_key,
        **optional,
    )


# Singleton, imported by all other modules as:
#   from taskana.config import settings
settings = _load_settings()
