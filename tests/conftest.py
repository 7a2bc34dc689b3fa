from __future__ import annotations

import itertools
import threading
from collections import defaultdict
from dataclasses import replace
from datetime import date, datetime
from typing import Optional

import pytest

from src.studyhall.studyhall.access.session import SessionContext
from src.studyhall.studyhall.attendance.model import AttendanceEvent, DayAggregate
from src.studyhall.studyhall.attendance.service import AttendanceService
from src.studyhall.studyhall.core.enums import RegistrationSource, Role
from src.studyhall.studyhall.core.exceptions import ConcurrencyConflictError
from src.studyhall.studyhall.fees.ledger import FeeLedger
from src.studyhall.studyhall.fees.model import AdvancePayment, FeeFields
from src.studyhall.studyhall.fees.service import FeeService
from src.studyhall.studyhall.membership.model import MembershipHistoryRecord
from src.studyhall.studyhall.membership.service import MembershipService
from src.studyhall.studyhall.students.model import Student, StudentAccount, StudentProfile

LIBRARY_ID = 7
OTHER_LIBRARY_ID = 8


class _Table:
    """Committed rows plus the rows written by one open unit of work."""

    def __init__(self, committed: dict, lock: threading.RLock):
        self._committed = committed
        self._lock = lock
        self.pending: dict = {}

    def get(self, key):
        if key in self.pending:
            return self.pending[key]
        with self._lock:
            return self._committed.get(key)

    def values(self) -> list:
        with self._lock:
            merged = dict(self._committed)
        merged.update(self.pending)
        return list(merged.values())

    def put(self, key, value) -> None:
        self.pending[key] = value

    def commit(self) -> None:
        self._committed.update(self.pending)
        self.pending.clear()


class InMemoryStudents:
    def __init__(self, table: _Table, store: "InMemoryStore", uow: "InMemoryUnitOfWork"):
        self._t = table
        self._store = store
        self._uow = uow

    def get_by_id(self, student_id: int) -> Optional[Student]:
        return self._t.get(int(student_id))

    def lock_for_update(self, student_id: int) -> Optional[Student]:
        self._uow.lock_row(int(student_id))
        return self.get_by_id(student_id)

    def get_by_phone(self, *, library_id: int, phone: str) -> Optional[Student]:
        for s in self._t.values():
            if s.library_id == library_id and s.phone == phone:
                return s
        return None

    def create(
        self,
        *,
        library_id,
        profile,
        membership_start,
        membership_end,
        fees,
        branch_id,
        seat_id,
        shift_id,
        locker_id,
        registration_source,
        remark=None,
    ) -> int:
        student_id = self._store.next_id("students")
        self._t.put(
            student_id,
            Student(
                student_id=student_id,
                library_id=library_id,
                profile=profile,
                membership_start=membership_start,
                membership_end=membership_end,
                fees=fees,
                branch_id=branch_id,
                seat_id=seat_id,
                shift_id=shift_id,
                locker_id=locker_id,
                registration_source=registration_source,
                remark=remark,
            ),
        )
        return student_id

    def update_membership(self, *, student_id, membership_start, membership_end, fees, branch_id, seat_id, shift_id, locker_id, remark=None) -> bool:
        if "update_membership" in self._store.fail_on:
            raise RuntimeError("simulated failure while updating the student row")
        s = self.get_by_id(student_id)
        if not s:
            return False
        self._t.put(
            s.student_id,
            replace(
                s,
                membership_start=membership_start,
                membership_end=membership_end,
                fees=fees,
                branch_id=branch_id,
                seat_id=seat_id,
                shift_id=shift_id,
                locker_id=locker_id,
                remark=remark,
            ),
        )
        return True

    def update_fees(self, *, student_id: int, fees: FeeFields) -> bool:
        s = self.get_by_id(student_id)
        if not s:
            return False
        self._t.put(s.student_id, replace(s, fees=fees))
        return True

    def set_active(self, student_id: int, *, is_active: bool) -> bool:
        s = self.get_by_id(student_id)
        if not s:
            return False
        self._t.put(s.student_id, replace(s, is_active=is_active))
        return True

    def list_for_library(self, library_id: int, *, branch_id: Optional[int] = None):
        rows = [
            s
            for s in self._t.values()
            if s.library_id == library_id and (branch_id is None or s.branch_id == branch_id)
        ]
        return sorted(rows, key=lambda s: (s.membership_end or date.max, s.student_id))


class InMemoryAccounts:
    def __init__(self, table: _Table, store: "InMemoryStore"):
        self._t = table
        self._store = store

    def get_by_phone(self, *, library_id: int, phone: str) -> Optional[StudentAccount]:
        for a in self._t.values():
            if a.library_id == library_id and a.phone == phone:
                return a
        return None

    def create(self, *, library_id: int, student_id: int, phone: str, password_hash: str) -> int:
        if self.get_by_phone(library_id=library_id, phone=phone):
            raise ConcurrencyConflictError("duplicate account")
        account_id = self._store.next_id("accounts")
        self._t.put(account_id, StudentAccount(account_id, library_id, student_id, phone, password_hash))
        return account_id


class InMemoryAttendanceEvents:
    def __init__(self, table: _Table, students: _Table, store: "InMemoryStore"):
        self._t = table
        self._students = students
        self._store = store

    def list_for_day(self, *, student_id: int, day: date):
        rows = [e for e in self._t.values() if e.student_id == student_id and e.event_date == day]
        return sorted(rows, key=lambda e: e.day_seq)

    def list_between(self, *, student_id: int, start: date, end: date):
        rows = [e for e in self._t.values() if e.student_id == student_id and start <= e.event_date <= end]
        return sorted(rows, key=lambda e: (e.event_date, e.day_seq))

    def recent_days(self, *, student_id: int, limit: int):
        days = {e.event_date for e in self._t.values() if e.student_id == student_id}
        return sorted(days, reverse=True)[:limit]

    def append(self, *, library_id, student_id, event_date, day_seq, action, created_at, source, notes=None, qr_payload=None):
        for e in self._t.values():
            if (e.student_id, e.event_date, e.day_seq) == (student_id, event_date, day_seq):
                raise ConcurrencyConflictError("Another update is in progress, please retry")
        event = AttendanceEvent(
            event_id=self._store.next_id("events"),
            library_id=library_id,
            student_id=student_id,
            event_date=event_date,
            day_seq=day_seq,
            action=action,
            created_at=created_at,
            source=source,
            notes=notes,
            qr_payload=qr_payload,
        )
        self._t.put(event.event_id, event)
        return event

    def org_day_aggregates(self, *, library_id, start, end, filters, offset, limit):
        groups: dict[tuple[int, date], list[AttendanceEvent]] = defaultdict(list)
        for e in self._t.values():
            if e.library_id == library_id and start <= e.event_date <= end:
                groups[(e.student_id, e.event_date)].append(e)

        needle = (filters.search or "").strip().lower()
        rows = []
        for (student_id, day), events in groups.items():
            s = self._students.get(student_id)
            if filters.branch_id is not None and s.branch_id != filters.branch_id:
                continue
            haystack = [s.name, s.phone or "", s.profile.registration_number or ""]
            if needle and not any(needle in h.lower() for h in haystack):
                continue
            stamps = sorted(e.created_at for e in events)
            rows.append(
                DayAggregate(
                    student_id=student_id,
                    student_name=s.name,
                    registration_number=s.profile.registration_number,
                    phone=s.phone,
                    branch_id=s.branch_id,
                    day=day,
                    first_at=stamps[0],
                    last_at=stamps[-1],
                    total_scans=len(events),
                    membership_end=s.membership_end,
                    is_active=s.is_active,
                    due_amount=s.fees.due_amount,
                )
            )
        rows.sort(key=lambda r: (r.day, r.first_at), reverse=True)
        return rows[offset : offset + limit], len(rows)


class InMemoryHistory:
    def __init__(self, table: _Table, store: "InMemoryStore"):
        self._t = table
        self._store = store

    def insert(self, **fields) -> MembershipHistoryRecord:
        record = MembershipHistoryRecord(history_id=self._store.next_id("history"), **fields)
        self._t.put(record.history_id, record)
        return record

    def get_by_id(self, history_id: int):
        return self._t.get(history_id)

    def list_for_student(self, student_id: int):
        rows = [r for r in self._t.values() if r.student_id == student_id]
        return sorted(rows, key=lambda r: (r.membership_start or date.min, r.history_id), reverse=True)


class InMemoryAdvances:
    def __init__(self, table: _Table, store: "InMemoryStore"):
        self._t = table
        self._store = store

    def create(self, *, library_id, student_id, amount, payment_date, membership_expiry, notes=None) -> AdvancePayment:
        payment = AdvancePayment(
            payment_id=self._store.next_id("advances"),
            library_id=library_id,
            student_id=student_id,
            amount=amount,
            payment_date=payment_date,
            membership_expiry=membership_expiry,
            notes=notes,
        )
        self._t.put(payment.payment_id, payment)
        return payment

    def list_for_library(self, library_id: int, *, student_id: Optional[int] = None):
        rows = [
            p
            for p in self._t.values()
            if p.library_id == library_id and (student_id is None or p.student_id == student_id)
        ]
        return sorted(rows, key=lambda p: (p.payment_date, p.payment_id), reverse=True)


class InMemoryUnitOfWork:
    def __init__(self, store: "InMemoryStore"):
        self._store = store
        self._held: list[threading.Lock] = []

    def __enter__(self) -> "InMemoryUnitOfWork":
        s = self._store
        self._tables = {name: _Table(rows, s.lock) for name, rows in s.tables.items()}
        self.students = InMemoryStudents(self._tables["students"], s, self)
        self.accounts = InMemoryAccounts(self._tables["accounts"], s)
        self.attendance = InMemoryAttendanceEvents(self._tables["events"], self._tables["students"], s)
        self.history = InMemoryHistory(self._tables["history"], s)
        self.advances = InMemoryAdvances(self._tables["advances"], s)
        return self

    def lock_row(self, student_id: int) -> None:
        row_lock = self._store.row_lock(student_id)
        if row_lock not in self._held:
            row_lock.acquire()
            self._held.append(row_lock)

    def __exit__(self, exc_type, exc, tb):
        try:
            with self._store.lock:
                if exc_type is None:
                    for t in self._tables.values():
                        t.commit()
                    self._store.commits += 1
                else:
                    self._store.rollbacks += 1
        finally:
            for row_lock in reversed(self._held):
                row_lock.release()
            self._held.clear()
        return False


class InMemoryStore:
    """Shared state behind the in-memory units of work.

    Writes become visible to other units of work only on commit, and
    ``lock_for_update`` holds a per-student lock until the unit of work ends.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self.tables: dict[str, dict] = {name: {} for name in ("students", "accounts", "events", "history", "advances")}
        self._ids = {name: itertools.count(1) for name in self.tables}
        self._row_locks: dict[int, threading.Lock] = {}
        self.fail_on: set[str] = set()
        self.commits = 0
        self.rollbacks = 0

    def uow(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self)

    def next_id(self, table: str) -> int:
        with self.lock:
            return next(self._ids[table])

    def row_lock(self, student_id: int) -> threading.Lock:
        with self.lock:
            return self._row_locks.setdefault(student_id, threading.Lock())

    @property
    def students(self) -> dict[int, Student]:
        return self.tables["students"]

    @property
    def events(self) -> list[AttendanceEvent]:
        return sorted(self.tables["events"].values(), key=lambda e: e.event_id)

    @property
    def history(self) -> list[MembershipHistoryRecord]:
        return sorted(self.tables["history"].values(), key=lambda r: r.history_id)

    @property
    def accounts(self) -> list[StudentAccount]:
        return list(self.tables["accounts"].values())

    def add_student(self, *, name: str = "Asha Verma", library_id: int = LIBRARY_ID, **fields) -> Student:
        student_id = self.next_id("students")
        profile = StudentProfile(
            name=name,
            phone=fields.pop("phone", f"98765{student_id:05d}"),
            registration_number=fields.pop("registration_number", f"REG-{student_id:03d}"),
        )
        fields.setdefault("registration_source", RegistrationSource.DIRECT)
        student = Student(
            student_id=student_id,
            library_id=library_id,
            profile=profile,
            membership_start=fields.pop("membership_start", date(2026, 10, 1)),
            membership_end=fields.pop("membership_end", date(2026, 12, 31)),
            **fields,
        )
        self.tables["students"][student_id] = student
        return student


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 10, 19, 9, 0, 0)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def owner():
    return SessionContext(role=Role.OWNER, library_id=LIBRARY_ID, user_id=1)


@pytest.fixture
def staff():
    return SessionContext(role=Role.STAFF, library_id=LIBRARY_ID, user_id=2)


@pytest.fixture
def other_owner():
    return SessionContext(role=Role.OWNER, library_id=OTHER_LIBRARY_ID, user_id=3)


@pytest.fixture
def as_student():
    def _session(student: Student) -> SessionContext:
        return SessionContext(role=Role.STUDENT, library_id=student.library_id, student_id=student.student_id)

    return _session


@pytest.fixture
def attendance_service(store, fixed_now) -> AttendanceService:
    return AttendanceService(store.uow, clock=lambda: fixed_now)


@pytest.fixture
def ledger() -> FeeLedger:
    return FeeLedger()


@pytest.fixture
def membership_service(store, fixed_now, ledger) -> MembershipService:
    return MembershipService(
        store.uow,
        ledger=ledger,
        clock=lambda: fixed_now,
        password_hasher=lambda raw: f"hashed:{raw}",
    )


@pytest.fixture
def fee_service(store, fixed_now, ledger) -> FeeService:
    return FeeService(store.uow, ledger=ledger, clock=lambda: fixed_now)
