"""Shared test fixtures and configuration.

Sets up fake environment variables so taskana.config doesn't sys.exit(),
and provides common fixtures like a temp DB and a habit registry.
"""

import os

# Patch env vars BEFORE any taskana imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("OPENAI_API_KEY", "fake-openai-key-for-tests")

from datetime import datetime

import pytest


# Monday 2026-02-16, 13:00 local: inside after_dhuhr with the default prayer times
FIXED_NOW = datetime(2026, 2, 16, 13, 0)
TODAY = "2026-02-16"


def _make_habit(habit_id="quran", name="قراءة القرآن", days=None, time_slot="after_fajr",
                requires_justification=True):
    from taskana.data.habits import Habit

    return Habit.model_validate({
        "id": habit_id,
        "name": name,
        "schedule": {
            "days": days or ["mon", "tue", "wed", "thu", "fri", "sat", "sun"],
            "timeSlot": time_slot,
            "durationMinutes": 20,
        },
        "requiresJustification": requires_justification,
    })


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_taskana.db")


@pytest.fixture
def day_db(tmp_db_path):
    """Return a DayLogDB instance backed by a temp file."""
    from taskana.data.db import DayLogDB
    return DayLogDB(db_path=tmp_db_path)


@pytest.fixture
def habit_registry(tmp_path):
    """Return an empty HabitRegistry pointed at a temp directory."""
    from taskana.data.habits import HabitRegistry
    return HabitRegistry(habits_dir=str(tmp_path / "habits"))


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def task_service(day_db, fixed_clock):
    from taskana.core.task_service import TaskService
    return TaskService(day_db, clock=fixed_clock, similarity_threshold=0.7)


@pytest.fixture
def make_habit():
    """Factory for Habit definitions (every day, after Fajr, justification required)."""
    return _make_habit
