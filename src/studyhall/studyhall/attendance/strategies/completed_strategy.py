from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ...common.datetime_utils import format_duration
from ...core.enums import DayStatus
from .base import DayDecision, DayStatusStrategy

logger = logging.getLogger(__name__)


class CompletedStrategy(DayStatusStrategy):
    """Even number of events (>= 2): duration is last out minus first in."""

    def decide(self, *, first_at: Optional[datetime], last_at: Optional[datetime], total_scans: int) -> DayDecision:
        text = format_duration(last_at - first_at)
        if text is None:
            # Clock skew or bad imported data.
            logger.warning("Last check-out %s precedes first check-in %s", last_at, first_at)
            text = "Error"
        return DayDecision(status=DayStatus.COMPLETED, last_out=last_at, duration_text=text)
