"""Schedule port — abstract interface for prayer-anchored time slots."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from taskana.data.models import TimeSlot


class SchedulePort(Protocol):
    """Abstract prayer schedule used by core modules."""

    def get_current_slot(self, now: datetime | None = None) -> TimeSlot: ...
