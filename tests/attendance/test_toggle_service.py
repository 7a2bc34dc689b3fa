from __future__ import annotations

import json
import threading
from datetime import date, datetime, time, timedelta

import pytest

from src.studyhall.studyhall.core.enums import AttendanceAction, CurrentStatus, DayStatus, EventSource
from src.studyhall.studyhall.core.exceptions import (
    AuthorizationError,
    InvalidPayloadError,
    InvalidSequenceError,
    NotFoundError,
    TenantMismatchError,
    ValidationError,
)


def _qr(library_id: int, **extra) -> str:
    return json.dumps({"libraryId": library_id, "libraryCode": "LIB007", "type": "attendance", **extra})


def test_status_without_events_is_checked_out(store, attendance_service, as_student):
    student = store.add_student()

    status = attendance_service.get_status(as_student(student), student.student_id)

    assert status.has_marked_today is False
    assert status.next_action == AttendanceAction.IN
    assert status.total_scans == 0
    assert status.current_status == CurrentStatus.CHECKED_OUT
    assert status.last_out is None


@pytest.mark.parametrize("toggles", [1, 2, 3, 4, 5])
def test_toggle_parity(store, attendance_service, as_student, fixed_now, toggles):
    student = store.add_student()
    session = as_student(student)

    for i in range(toggles):
        attendance_service.toggle(session, student.student_id, now=fixed_now + timedelta(minutes=i))

    status = attendance_service.get_status(session, student.student_id, as_of=fixed_now + timedelta(hours=1))
    expected = CurrentStatus.CHECKED_IN if toggles % 2 else CurrentStatus.CHECKED_OUT
    assert status.current_status == expected
    assert status.total_scans == toggles
    assert [e.action for e in store.events] == [
        AttendanceAction.IN if n % 2 == 0 else AttendanceAction.OUT for n in range(toggles)
    ]


def test_toggle_in_then_out_gives_duration(store, attendance_service, as_student, fixed_now):
    student = store.add_student()
    session = as_student(student)

    first = attendance_service.toggle(session, student.student_id, now=fixed_now)
    second = attendance_service.toggle(session, student.student_id, now=fixed_now.replace(hour=13, minute=30))

    assert (first.action, first.total_today) == ("checked in", 1)
    assert (second.action, second.total_today) == ("checked out", 2)

    [day] = list(attendance_service.get_history(session, student.student_id, view="daily", now=fixed_now))
    assert day.first_in == datetime(2026, 10, 19, 9, 0)
    assert day.last_out == datetime(2026, 10, 19, 13, 30)
    assert day.status == DayStatus.COMPLETED
    assert day.duration_text == "4h 30m"


def test_status_after_checkout_reports_last_out(store, attendance_service, as_student, fixed_now):
    student = store.add_student()
    session = as_student(student)
    attendance_service.toggle(session, student.student_id, now=fixed_now)
    attendance_service.toggle(session, student.student_id, now=fixed_now + timedelta(hours=2))

    status = attendance_service.get_status(session, student.student_id, as_of=fixed_now + timedelta(hours=3))

    assert status.has_marked_today is True
    assert status.first_in == fixed_now
    assert status.last_out == fixed_now + timedelta(hours=2)


def test_events_on_other_days_do_not_affect_parity(store, attendance_service, as_student, fixed_now):
    student = store.add_student()
    session = as_student(student)
    attendance_service.toggle(session, student.student_id, now=fixed_now - timedelta(days=1))

    result = attendance_service.toggle(session, student.student_id, now=fixed_now)

    assert result.action == "checked in"
    assert result.total_today == 1


def test_admin_can_toggle_for_student(store, attendance_service, staff):
    student = store.add_student()

    result = attendance_service.toggle(staff, student.student_id)

    assert result.record.student_id == student.student_id
    assert result.record.source == EventSource.TOGGLE


def test_student_cannot_toggle_for_someone_else(store, attendance_service, as_student):
    me = store.add_student(name="Me")
    other = store.add_student(name="Other")

    with pytest.raises(AuthorizationError):
        attendance_service.toggle(as_student(me), other.student_id)
    assert store.events == []


def test_toggle_rejects_student_of_other_library(store, attendance_service, other_owner):
    student = store.add_student()

    with pytest.raises(TenantMismatchError):
        attendance_service.toggle(other_owner, student.student_id)


def test_toggle_unknown_student(attendance_service, owner):
    with pytest.raises(NotFoundError):
        attendance_service.toggle(owner, 999)


def test_manual_double_checkin_rejected(store, attendance_service, as_student):
    student = store.add_student()
    session = as_student(student)
    attendance_service.record_manual(session, student.student_id, "in", "08:00")

    with pytest.raises(InvalidSequenceError, match="Already checked in"):
        attendance_service.record_manual(session, student.student_id, "in", "08:30")
    assert len(store.events) == 1


def test_manual_checkout_without_checkin_rejected(store, attendance_service, as_student):
    student = store.add_student()

    with pytest.raises(InvalidSequenceError, match="No check-in"):
        attendance_service.record_manual(as_student(student), student.student_id, AttendanceAction.OUT, time(8, 0))


def test_manual_entry_before_last_event_rejected(store, attendance_service, as_student, fixed_now):
    student = store.add_student()
    session = as_student(student)
    attendance_service.toggle(session, student.student_id, now=fixed_now.replace(hour=8, minute=30))

    with pytest.raises(InvalidSequenceError):
        attendance_service.record_manual(session, student.student_id, "out", "08:15")


def test_manual_entry_in_future_rejected(store, attendance_service, as_student):
    student = store.add_student()

    with pytest.raises(ValidationError):
        attendance_service.record_manual(as_student(student), student.student_id, "in", "10:00")


@pytest.mark.parametrize("bad", ["8 o'clock", "25:00", ""])
def test_manual_entry_bad_time_format(store, attendance_service, as_student, bad):
    student = store.add_student()

    with pytest.raises(ValidationError):
        attendance_service.record_manual(as_student(student), student.student_id, "in", bad)


def test_manual_checkin_then_checkout(store, attendance_service, as_student):
    student = store.add_student()
    session = as_student(student)

    attendance_service.record_manual(session, student.student_id, "in", "07:15")
    record = attendance_service.record_manual(session, student.student_id, "out", "08:45", notes="Left early")

    assert record.source == EventSource.MANUAL
    assert record.notes == "Left early"
    assert record.day_seq == 2
    assert store.events[0].notes == "Manual check-in"


def test_mark_with_qr_records_payload(store, attendance_service, as_student):
    student = store.add_student()

    result = attendance_service.mark_with_qr(as_student(student), student.student_id, _qr(student.library_id))

    assert result.action == "checked in"
    assert result.record.source == EventSource.QR
    assert json.loads(result.record.qr_payload)["libraryId"] == student.library_id


def test_mark_with_qr_accepts_mapping(store, attendance_service, as_student):
    student = store.add_student()
    payload = {"libraryId": student.library_id, "type": "attendance"}

    result = attendance_service.mark_with_qr(as_student(student), student.student_id, payload)

    assert result.total_today == 1


def test_mark_with_qr_from_other_library(store, attendance_service, as_student):
    student = store.add_student()

    with pytest.raises(TenantMismatchError):
        attendance_service.mark_with_qr(as_student(student), student.student_id, _qr(student.library_id + 1))
    assert store.events == []


@pytest.mark.parametrize(
    "payload",
    [
        "",
        "not json",
        "[1, 2]",
        json.dumps({"libraryId": 7, "type": "payment"}),
        json.dumps({"type": "attendance"}),
        json.dumps({"libraryId": "abc", "type": "attendance"}),
        json.dumps({"libraryId": True, "type": "attendance"}),
    ],
)
def test_mark_with_qr_malformed_payload(store, attendance_service, as_student, payload):
    student = store.add_student()

    with pytest.raises(InvalidPayloadError):
        attendance_service.mark_with_qr(as_student(student), student.student_id, payload)
    assert store.events == []


def test_monthly_history_lists_every_day_newest_first(store, attendance_service, as_student, fixed_now):
    student = store.add_student()
    session = as_student(student)
    attendance_service.toggle(session, student.student_id, now=datetime(2026, 10, 2, 9, 0))
    attendance_service.toggle(session, student.student_id, now=datetime(2026, 10, 2, 10, 0))
    attendance_service.toggle(session, student.student_id, now=datetime(2026, 10, 5, 9, 0))

    days = list(attendance_service.get_history(session, student.student_id, view="monthly", month=10, year=2026))

    assert [d.day for d in days][:2] == [date(2026, 10, 19), date(2026, 10, 18)]
    assert len(days) == 19
    by_day = {d.day: d for d in days}
    assert by_day[date(2026, 10, 2)].duration_text == "1h"
    assert by_day[date(2026, 10, 5)].status == DayStatus.ONGOING
    assert by_day[date(2026, 10, 3)].status == DayStatus.ABSENT
    assert sum(d.is_present for d in days) == 2


def test_monthly_history_for_past_month_covers_whole_month(store, attendance_service, as_student):
    student = store.add_student()

    days = list(
        attendance_service.get_history(as_student(student), student.student_id, view="monthly", month=9, year=2026)
    )

    assert len(days) == 30
    assert days[0].day == date(2026, 9, 30)
    assert all(d.status == DayStatus.ABSENT for d in days)


def test_history_rejects_unknown_view(store, attendance_service, as_student):
    student = store.add_student()

    with pytest.raises(ValidationError):
        attendance_service.get_history(as_student(student), student.student_id, view="weekly")


def test_recent_history_returns_days_with_events(store, attendance_service, as_student):
    student = store.add_student()
    session = as_student(student)
    for day in (3, 7, 12):
        attendance_service.toggle(session, student.student_id, now=datetime(2026, 10, day, 9, 0))
        attendance_service.toggle(session, student.student_id, now=datetime(2026, 10, day, 11, 15))

    recent = attendance_service.get_recent_history(session, student.student_id, limit=2)

    assert [d.day for d in recent] == [date(2026, 10, 12), date(2026, 10, 7)]
    assert all(d.duration_text == "2h 15m" for d in recent)


def test_concurrent_toggles_never_double_check_in(store, attendance_service, as_student, fixed_now):
    student = store.add_student()
    session = as_student(student)
    workers = 8
    barrier = threading.Barrier(workers)
    errors = []

    def worker():
        barrier.wait()
        try:
            attendance_service.toggle(session, student.student_id, now=fixed_now)
        except Exception as exc:  # collected for the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    events = sorted(store.events, key=lambda e: e.day_seq)
    assert [e.day_seq for e in events] == list(range(1, workers + 1))
    for prev, cur in zip(events, events[1:]):
        assert prev.action != cur.action
