from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from ..core.enums import AttendanceAction, CurrentStatus, DayStatus, EventSource, MembershipStatus


@dataclass(frozen=True)
class AttendanceEvent:
    """Domain entity: one immutable scan/check action (append-only)."""

    event_id: int
    library_id: int
    student_id: int
    event_date: date
    day_seq: int
    action: AttendanceAction
    created_at: datetime
    source: EventSource = EventSource.TOGGLE
    notes: Optional[str] = None
    qr_payload: Optional[str] = None


@dataclass(frozen=True)
class AttendanceDay:
    """Read-model: one calendar day derived from a student's events."""

    day: date
    first_in: Optional[datetime]
    last_out: Optional[datetime]
    total_scans: int
    status: DayStatus
    duration_text: Optional[str]

    @property
    def is_present(self) -> bool:
        return self.status.is_present


@dataclass(frozen=True)
class TodayStatus:
    has_marked_today: bool
    next_action: AttendanceAction
    total_scans: int
    current_status: CurrentStatus
    first_in: Optional[datetime] = None
    last_out: Optional[datetime] = None


@dataclass(frozen=True)
class ToggleResult:
    action: str
    record: AttendanceEvent
    total_today: int


@dataclass(frozen=True)
class DayAggregate:
    """Per-student per-day aggregate as returned by the org attendance query."""

    student_id: int
    student_name: str
    registration_number: Optional[str]
    phone: Optional[str]
    branch_id: Optional[int]
    day: date
    first_at: datetime
    last_at: datetime
    total_scans: int
    membership_end: Optional[date]
    is_active: bool
    due_amount: Decimal


@dataclass(frozen=True)
class OrgAttendanceFilter:
    search: str = ""
    day: Union[date, str, None] = None
    start_date: Union[date, str, None] = None
    end_date: Union[date, str, None] = None
    month: Optional[int] = None
    year: Optional[int] = None
    branch_id: Optional[int] = None
    page: int = 1
    limit: Optional[int] = None


@dataclass(frozen=True)
class OrgAttendanceRow:
    student_id: int
    student_name: str
    registration_number: Optional[str]
    phone: Optional[str]
    day: date
    first_in: Optional[datetime]
    last_out: Optional[datetime]
    total_scans: int
    status: DayStatus
    duration_text: Optional[str]
    membership_status: MembershipStatus
    due_amount: Decimal
    fee_overdue: bool


@dataclass(frozen=True)
class OrgAttendancePage:
    rows: list[OrgAttendanceRow]
    page: int
    limit: int
    total_records: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1
