from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import MembershipStatus, RegistrationSource
from ..fees.model import FeeFields, FeeInput
from ..students.model import Student, StudentProfile


@dataclass(frozen=True)
class MembershipHistoryRecord:
    """Immutable snapshot of one membership period (append-only audit trail)."""

    history_id: int
    student_id: int
    library_id: int
    membership_start: Optional[date]
    membership_end: Optional[date]
    fees: FeeFields
    status: MembershipStatus
    changed_at: datetime
    branch_id: Optional[int] = None
    seat_id: Optional[int] = None
    shift_id: Optional[int] = None
    locker_id: Optional[int] = None
    remark: Optional[str] = None


@dataclass(frozen=True)
class MembershipTerms:
    """New membership period requested by the owner/staff.

    Seat/shift/locker/branch left as None keep the current assignment.
    """

    membership_start: date
    membership_end: date
    fees: FeeInput = field(default_factory=FeeInput)
    branch_id: Optional[int] = None
    seat_id: Optional[int] = None
    shift_id: Optional[int] = None
    locker_id: Optional[int] = None
    remark: Optional[str] = None


@dataclass(frozen=True)
class Admission:
    profile: StudentProfile
    terms: MembershipTerms
    registration_source: RegistrationSource = RegistrationSource.DIRECT


@dataclass(frozen=True)
class RenewalResult:
    student: Student
    history: MembershipHistoryRecord
    warnings: tuple[str, ...] = ()
    account_created: bool = False


@dataclass(frozen=True)
class AdmissionResult:
    student: Student
    history: MembershipHistoryRecord
    warnings: tuple[str, ...] = ()
    account_created: bool = False


@dataclass(frozen=True)
class MembershipView:
    """Read-model for status lists (active / expiring / expired / inactive)."""

    student_id: int
    name: str
    phone: Optional[str]
    branch_id: Optional[int]
    membership_end: Optional[date]
    status: MembershipStatus
    days_left: Optional[int]
    due_amount: Decimal


@dataclass(frozen=True)
class HistoryMonth:
    month: str
    label: str
    records: list[MembershipHistoryRecord]
    total_fee: Decimal
    total_paid: Decimal
    total_due: Decimal


@dataclass(frozen=True)
class MembershipHistory:
    records: list[MembershipHistoryRecord]
    months: list[HistoryMonth]
    issues: dict[int, list[str]]

    @property
    def total_records(self) -> int:
        return len(self.records)
