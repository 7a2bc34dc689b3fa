from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import MembershipStatus
from ..fees.model import FeeFields
from .model import MembershipHistoryRecord


class MembershipHistoryRepository(Protocol):
    """Append-only: records are never updated or deleted."""

    def insert(
        self,
        *,
        student_id: int,
        library_id: int,
        membership_start: Optional[date],
        membership_end: Optional[date],
        fees: FeeFields,
        status: MembershipStatus,
        changed_at: datetime,
        branch_id: Optional[int] = None,
        seat_id: Optional[int] = None,
        shift_id: Optional[int] = None,
        locker_id: Optional[int] = None,
        remark: Optional[str] = None,
    ) -> MembershipHistoryRecord:
        raise NotImplementedError

    def get_by_id(self, history_id: int) -> Optional[MembershipHistoryRecord]:
        raise NotImplementedError

    def list_for_student(self, student_id: int) -> Sequence[MembershipHistoryRecord]:
        """Newest membership start first."""

        raise NotImplementedError
