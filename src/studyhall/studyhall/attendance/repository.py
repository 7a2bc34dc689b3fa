from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceAction, EventSource
from .model import AttendanceEvent, DayAggregate, OrgAttendanceFilter


class AttendanceRepository(Protocol):
    def list_for_day(self, *, student_id: int, day: date) -> Sequence[AttendanceEvent]:
        """Events of one student on one calendar day, oldest first."""

        raise NotImplementedError

    def list_between(self, *, student_id: int, start: date, end: date) -> Sequence[AttendanceEvent]:
        """Events of one student for start..end inclusive, oldest first."""

        raise NotImplementedError

    def recent_days(self, *, student_id: int, limit: int) -> Sequence[date]:
        """Most recent distinct days having events, newest first."""

        raise NotImplementedError

    def append(
        self,
        *,
        library_id: int,
        student_id: int,
        event_date: date,
        day_seq: int,
        action: AttendanceAction,
        created_at: datetime,
        source: EventSource,
        notes: Optional[str] = None,
        qr_payload: Optional[str] = None,
    ) -> AttendanceEvent:
        """Insert one event. (student_id, event_date, day_seq) is unique."""

        raise NotImplementedError

    def org_day_aggregates(
        self,
        *,
        library_id: int,
        start: date,
        end: date,
        filters: OrgAttendanceFilter,
        offset: int,
        limit: int,
    ) -> tuple[Sequence[DayAggregate], int]:
        """One page of per-student per-day aggregates and the total group count."""

        raise NotImplementedError
