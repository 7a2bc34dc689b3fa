from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...core.enums import DayStatus
from .base import DayDecision, DayStatusStrategy


class AbsentStrategy(DayStatusStrategy):
    """No events on the day."""

    def decide(self, *, first_at: Optional[datetime], last_at: Optional[datetime], total_scans: int) -> DayDecision:
        return DayDecision(status=DayStatus.ABSENT)
