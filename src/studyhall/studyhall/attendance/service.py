from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import date, datetime, time
from typing import Callable, Iterator, Mapping, Optional, Sequence, Union

from ..access.session import SessionContext, ensure_can_act_for, require_admin
from ..common.datetime_utils import iter_days_desc, month_bounds, now_local, parse_hhmm, parse_iso_date
from ..core.constants import (
    DEFAULT_EXPIRING_SOON_DAYS,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    QR_PAYLOAD_TYPE,
)
from ..core.enums import AttendanceAction, CurrentStatus, EventSource, HistoryView
from ..core.exceptions import (
    InvalidDateRangeError,
    InvalidSequenceError,
    NotFoundError,
    TenantMismatchError,
    ValidationError,
)
from ..database.unit_of_work import UnitOfWork, UnitOfWorkFactory
from ..membership.status import derive_status
from ..students.model import Student
from .factory import DayStatusFactory
from .model import (
    AttendanceDay,
    AttendanceEvent,
    OrgAttendanceFilter,
    OrgAttendancePage,
    OrgAttendanceRow,
    TodayStatus,
    ToggleResult,
)
from .qr import decode_qr_image, parse_qr_payload

logger = logging.getLogger(__name__)

_ACTION_LABELS = {
    AttendanceAction.IN: "checked in",
    AttendanceAction.OUT: "checked out",
}


def _group_by_day(events: Sequence[AttendanceEvent]) -> dict[date, list[AttendanceEvent]]:
    grouped: dict[date, list[AttendanceEvent]] = defaultdict(list)
    for e in events:
        grouped[e.event_date].append(e)
    return grouped


def _as_day(value: Union[date, str, None], field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} must be a date in YYYY-MM-DD format")


def _today_status(events: Sequence[AttendanceEvent]) -> TodayStatus:
    count = len(events)
    checked_in = count % 2 == 1
    return TodayStatus(
        has_marked_today=count > 0,
        next_action=AttendanceAction.OUT if checked_in else AttendanceAction.IN,
        total_scans=count,
        current_status=CurrentStatus.CHECKED_IN if checked_in else CurrentStatus.CHECKED_OUT,
        first_in=events[0].created_at if events else None,
        last_out=events[-1].created_at if count and not checked_in else None,
    )


class AttendanceService:
    """Daily check-in/check-out ledger.

    Direction alternates per student per day: the n-th event of a day is a
    check-in when n is odd. Every write locks the student row so concurrent
    toggles for one student are serialized.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] = now_local,
        qr_type: str = QR_PAYLOAD_TYPE,
        day_factory: DayStatusFactory | None = None,
        expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ):
        self._uow_factory = uow_factory
        self._clock = clock
        self._qr_type = qr_type
        self._days = day_factory or DayStatusFactory()
        self._expiring_soon_days = int(expiring_soon_days)
        self._page_limit = int(page_limit)

    def _load_student(
        self, uow: UnitOfWork, session: SessionContext, student_id: int, *, lock: bool = False
    ) -> Student:
        student = uow.students.lock_for_update(student_id) if lock else uow.students.get_by_id(student_id)
        if not student:
            raise NotFoundError("Student not found")
        ensure_can_act_for(session, student_id=student.student_id, library_id=student.library_id)
        return student

    def get_status(self, session: SessionContext, student_id: int, *, as_of: datetime | None = None) -> TodayStatus:
        now = as_of or self._clock()
        with self._uow_factory() as uow:
            self._load_student(uow, session, student_id)
            events = uow.attendance.list_for_day(student_id=student_id, day=now.date())
        return _today_status(events)

    def toggle(
        self,
        session: SessionContext,
        student_id: int,
        *,
        notes: Optional[str] = None,
        now: datetime | None = None,
    ) -> ToggleResult:
        return self._append_next(session, student_id, source=EventSource.TOGGLE, notes=notes, now=now)

    def mark_with_qr(
        self,
        session: SessionContext,
        student_id: int,
        qr_payload: Union[str, bytes, Mapping],
        *,
        notes: Optional[str] = None,
        now: datetime | None = None,
    ) -> ToggleResult:
        payload = parse_qr_payload(qr_payload, expected_type=self._qr_type)
        if payload.library_id != int(session.library_id):
            logger.warning(
                "QR scan for library %s rejected in session of library %s", payload.library_id, session.library_id
            )
            raise TenantMismatchError("This QR code belongs to a different library")

        return self._append_next(
            session,
            student_id,
            source=EventSource.QR,
            notes=notes or "QR code scan",
            qr_payload=payload.raw,
            now=now,
        )

    def mark_with_qr_image(
        self,
        session: SessionContext,
        student_id: int,
        image_bytes: bytes,
        *,
        notes: Optional[str] = None,
        now: datetime | None = None,
    ) -> ToggleResult:
        return self.mark_with_qr(session, student_id, decode_qr_image(image_bytes), notes=notes, now=now)

    def _append_next(
        self,
        session: SessionContext,
        student_id: int,
        *,
        source: EventSource,
        notes: Optional[str] = None,
        qr_payload: Optional[str] = None,
        now: datetime | None = None,
    ) -> ToggleResult:
        now = now or self._clock()
        today = now.date()

        with self._uow_factory() as uow:
            student = self._load_student(uow, session, student_id, lock=True)
            count = len(uow.attendance.list_for_day(student_id=student.student_id, day=today))
            action = AttendanceAction.OUT if count % 2 == 1 else AttendanceAction.IN
            record = uow.attendance.append(
                library_id=student.library_id,
                student_id=student.student_id,
                event_date=today,
                day_seq=count + 1,
                action=action,
                created_at=now,
                source=source,
                notes=notes,
                qr_payload=qr_payload,
            )

        logger.info("Student %s %s (%s, #%s today)", student_id, _ACTION_LABELS[action], source.value, count + 1)
        return ToggleResult(action=_ACTION_LABELS[action], record=record, total_today=count + 1)

    def record_manual(
        self,
        session: SessionContext,
        student_id: int,
        action: Union[AttendanceAction, str],
        at: Union[time, datetime, str],
        *,
        notes: Optional[str] = None,
        now: datetime | None = None,
    ) -> AttendanceEvent:
        try:
            action = AttendanceAction(action)
        except ValueError:
            raise ValidationError("Action must be 'in' or 'out'")

        now = now or self._clock()
        today = now.date()
        when = self._resolve_manual_time(at, today)
        if when > now:
            raise ValidationError("Manual time cannot be in the future")

        with self._uow_factory() as uow:
            student = self._load_student(uow, session, student_id, lock=True)
            events = uow.attendance.list_for_day(student_id=student.student_id, day=today)
            count = len(events)

            if action is AttendanceAction.IN and count % 2 == 1:
                raise InvalidSequenceError("Already checked in today; check out first")
            if action is AttendanceAction.OUT and count == 0:
                raise InvalidSequenceError("No check-in recorded today")
            if action is AttendanceAction.OUT and count % 2 == 0:
                raise InvalidSequenceError("Already checked out; check in first")
            if events and when < events[-1].created_at:
                raise InvalidSequenceError(
                    f"Manual time cannot be earlier than the last entry ({events[-1].created_at:%H:%M})"
                )

            record = uow.attendance.append(
                library_id=student.library_id,
                student_id=student.student_id,
                event_date=today,
                day_seq=count + 1,
                action=action,
                created_at=when,
                source=EventSource.MANUAL,
                notes=notes or f"Manual check-{action.value}",
            )

        logger.info("Manual check-%s for student %s at %s", action.value, student_id, when.strftime("%H:%M"))
        return record

    @staticmethod
    def _resolve_manual_time(at: Union[time, datetime, str], today: date) -> datetime:
        if isinstance(at, datetime):
            if at.date() != today:
                raise ValidationError("Manual entries can only be recorded for today")
            return at
        if isinstance(at, str):
            try:
                at = parse_hhmm(at)
            except ValueError:
                raise ValidationError("Time must be in HH:MM format")
        if not isinstance(at, time):
            raise ValidationError("Time must be in HH:MM format")
        return datetime.combine(today, at)

    def get_history(
        self,
        session: SessionContext,
        student_id: int,
        *,
        view: Union[HistoryView, str] = HistoryView.DAILY,
        day: Union[date, str, None] = None,
        month: int | None = None,
        year: int | None = None,
        now: datetime | None = None,
    ) -> Iterator[AttendanceDay]:
        """Daily view yields one day; monthly view yields each day up to today, newest first."""
        try:
            view = HistoryView(view)
        except ValueError:
            raise ValidationError("View must be 'daily' or 'monthly'")

        today = (now or self._clock()).date()

        if view is HistoryView.DAILY:
            target = _as_day(day, "Day") or today
            with self._uow_factory() as uow:
                self._load_student(uow, session, student_id)
                events = uow.attendance.list_for_day(student_id=student_id, day=target)
            return iter([self._days.summarize_events(target, events)])

        month = int(month or today.month)
        year = int(year or today.year)
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        first, last = month_bounds(year, month)
        end = min(last, today)

        with self._uow_factory() as uow:
            self._load_student(uow, session, student_id)
            events = uow.attendance.list_between(student_id=student_id, start=first, end=end) if first <= end else []
        return self._iter_days(first, end, _group_by_day(events))

    def _iter_days(self, first: date, end: date, grouped: dict[date, list[AttendanceEvent]]) -> Iterator[AttendanceDay]:
        for d in iter_days_desc(first, end):
            yield self._days.summarize_events(d, grouped.get(d, []))

    def get_recent_history(
        self, session: SessionContext, student_id: int, *, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[AttendanceDay]:
        """Latest days that have events, newest first."""
        limit = max(1, min(int(limit), MAX_PAGE_LIMIT))
        with self._uow_factory() as uow:
            self._load_student(uow, session, student_id)
            days = list(uow.attendance.recent_days(student_id=student_id, limit=limit))
            if not days:
                return []
            events = uow.attendance.list_between(student_id=student_id, start=min(days), end=max(days))

        grouped = _group_by_day(events)
        return [self._days.summarize_events(d, grouped.get(d, [])) for d in days]

    def get_org_attendance(
        self,
        session: SessionContext,
        filters: OrgAttendanceFilter | None = None,
        *,
        now: datetime | None = None,
    ) -> OrgAttendancePage:
        require_admin(session)
        filters = filters or OrgAttendanceFilter()
        today = (now or self._clock()).date()

        page = int(filters.page)
        limit = self._page_limit if filters.limit is None else int(filters.limit)
        if page < 1:
            raise ValidationError("Page must be 1 or greater")
        if limit < 1:
            raise ValidationError("Limit must be 1 or greater")
        limit = min(limit, MAX_PAGE_LIMIT)

        start, end = self._resolve_range(filters, today)

        with self._uow_factory() as uow:
            aggregates, total = uow.attendance.org_day_aggregates(
                library_id=session.library_id,
                start=start,
                end=end,
                filters=filters,
                offset=(page - 1) * limit,
                limit=limit,
            )

        rows = []
        for a in aggregates:
            summary = self._days.summarize(day=a.day, total_scans=a.total_scans, first_at=a.first_at, last_at=a.last_at)
            period_over = a.membership_end is None or a.membership_end < today
            rows.append(
                OrgAttendanceRow(
                    student_id=a.student_id,
                    student_name=a.student_name,
                    registration_number=a.registration_number,
                    phone=a.phone,
                    day=a.day,
                    first_in=summary.first_in,
                    last_out=summary.last_out,
                    total_scans=a.total_scans,
                    status=summary.status,
                    duration_text=summary.duration_text,
                    membership_status=derive_status(
                        a.membership_end, a.is_active, today, threshold_days=self._expiring_soon_days
                    ),
                    due_amount=a.due_amount,
                    fee_overdue=a.due_amount > 0 and period_over,
                )
            )

        return OrgAttendancePage(
            rows=rows,
            page=page,
            limit=limit,
            total_records=total,
            total_pages=math.ceil(total / limit) if total else 0,
        )

    @staticmethod
    def _resolve_range(filters: OrgAttendanceFilter, today: date) -> tuple[date, date]:
        day = _as_day(filters.day, "Day")
        if day:
            return day, day
        start_date = _as_day(filters.start_date, "Start date")
        end_date = _as_day(filters.end_date, "End date")
        if start_date or end_date:
            start = start_date or end_date
            end = end_date or start_date
            if start > end:
                raise InvalidDateRangeError("Start date must be on or before end date")
            return start, end
        if filters.month:
            if not 1 <= int(filters.month) <= 12:
                raise ValidationError("Month must be between 1 and 12")
            return month_bounds(int(filters.year or today.year), int(filters.month))
        if filters.year:
            return date(int(filters.year), 1, 1), date(int(filters.year), 12, 31)
        return today, today
