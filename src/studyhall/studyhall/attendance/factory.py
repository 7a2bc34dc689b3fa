from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Sequence

from .model import AttendanceDay, AttendanceEvent
from .strategies.absent_strategy import AbsentStrategy
from .strategies.base import DayStatusStrategy
from .strategies.completed_strategy import CompletedStrategy
from .strategies.ongoing_strategy import OngoingStrategy


@dataclass
class DayStatusFactory:
    """Factory Pattern: choose the day strategy from the event count parity."""

    def for_count(self, total_scans: int) -> DayStatusStrategy:
        if total_scans <= 0:
            return AbsentStrategy()
        if total_scans % 2 == 1:
            return OngoingStrategy()
        return CompletedStrategy()

    def summarize(
        self,
        *,
        day: date,
        total_scans: int,
        first_at: Optional[datetime],
        last_at: Optional[datetime],
    ) -> AttendanceDay:
        decision = self.for_count(total_scans).decide(first_at=first_at, last_at=last_at, total_scans=total_scans)
        return AttendanceDay(
            day=day,
            first_in=first_at if total_scans else None,
            last_out=decision.last_out,
            total_scans=total_scans,
            status=decision.status,
            duration_text=decision.duration_text,
        )

    def summarize_events(self, day: date, events: Sequence[AttendanceEvent]) -> AttendanceDay:
        """Events must be ordered oldest first."""
        if not events:
            return self.summarize(day=day, total_scans=0, first_at=None, last_at=None)
        return self.summarize(
            day=day,
            total_scans=len(events),
            first_at=events[0].created_at,
            last_at=events[-1].created_at,
        )
