from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...core.enums import DayStatus
from .base import DayDecision, DayStatusStrategy


class OngoingStrategy(DayStatusStrategy):
    """Odd number of events: the student is still checked in."""

    def decide(self, *, first_at: Optional[datetime], last_at: Optional[datetime], total_scans: int) -> DayDecision:
        return DayDecision(status=DayStatus.ONGOING, last_out=None, duration_text="Ongoing")
