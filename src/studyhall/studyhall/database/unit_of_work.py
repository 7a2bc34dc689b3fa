from __future__ import annotations

from typing import Callable, Optional, Protocol

from ..attendance.mysql_attendance_repository import MySQLAttendanceRepository
from ..attendance.repository import AttendanceRepository
from ..fees.mysql_advance_repository import MySQLAdvancePaymentRepository
from ..fees.repository import AdvancePaymentRepository
from ..membership.mysql_history_repository import MySQLMembershipHistoryRepository
from ..membership.repository import MembershipHistoryRepository
from ..students.mysql_student_repository import MySQLStudentAccountRepository, MySQLStudentRepository
from ..students.repository import StudentAccountRepository, StudentRepository
from .connection import DatabaseConnection
from .mysql_base import db_transaction


class UnitOfWork(Protocol):
    """Transaction boundary handed to services.

    Entering begins a transaction, a clean exit commits and an exception rolls
    everything back. Repositories are only valid inside the ``with`` block.
    """

    students: StudentRepository
    accounts: StudentAccountRepository
    attendance: AttendanceRepository
    history: MembershipHistoryRepository
    advances: AdvancePaymentRepository

    def __enter__(self) -> "UnitOfWork":
        ...

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        ...


UnitOfWorkFactory = Callable[[], UnitOfWork]


class MySQLUnitOfWork:
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory
        self._tx = None

    def __enter__(self) -> "MySQLUnitOfWork":
        self._tx = db_transaction(self._conn_factory)
        _, cur = self._tx.__enter__()
        self.students = MySQLStudentRepository(cur)
        self.accounts = MySQLStudentAccountRepository(cur)
        self.attendance = MySQLAttendanceRepository(cur)
        self.history = MySQLMembershipHistoryRepository(cur)
        self.advances = MySQLAdvancePaymentRepository(cur)
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        tx, self._tx = self._tx, None
        return tx.__exit__(exc_type, exc, tb)


def mysql_uow_factory(conn_factory: DatabaseConnection) -> UnitOfWorkFactory:
    return lambda: MySQLUnitOfWork(conn_factory)
