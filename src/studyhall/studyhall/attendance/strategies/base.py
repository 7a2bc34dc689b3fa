from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...core.enums import DayStatus


@dataclass(frozen=True)
class DayDecision:
    status: DayStatus
    last_out: Optional[datetime] = None
    duration_text: Optional[str] = None


class DayStatusStrategy(ABC):
    """Strategy Pattern: encapsulate how a day's status and duration are decided."""

    @abstractmethod
    def decide(self, *, first_at: Optional[datetime], last_at: Optional[datetime], total_scans: int) -> DayDecision:
        raise NotImplementedError
