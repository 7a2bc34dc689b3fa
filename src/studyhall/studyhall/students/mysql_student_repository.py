from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..core.enums import RegistrationSource
from ..database.mysql_base import fetchall, fetchone
from ..fees.model import FeeFields
from .model import Student, StudentAccount, StudentProfile
from .repository import StudentAccountRepository, StudentRepository

_STUDENT_COLUMNS = """
    student_id, library_id, branch_id, name, phone, email, address,
    registration_number, father_name, government_id,
    membership_start, membership_end,
    total_fee, amount_paid, due_amount, cash, online, security_money, discount, advance_applied,
    seat_id, shift_id, locker_id, is_active, registration_source, remark, created_at
"""


def _fees_from_row(r: dict) -> FeeFields:
    return FeeFields(
        total_fee=r["total_fee"],
        amount_paid=r["amount_paid"],
        due_amount=r["due_amount"],
        cash=r["cash"],
        online=r["online"],
        security_money=r["security_money"],
        discount=r["discount"],
        advance_applied=r["advance_applied"],
    )


def _student_from_row(r: dict) -> Student:
    return Student(
        student_id=int(r["student_id"]),
        library_id=int(r["library_id"]),
        profile=StudentProfile(
            name=r["name"],
            phone=r.get("phone"),
            email=r.get("email"),
            address=r.get("address"),
            registration_number=r.get("registration_number"),
            father_name=r.get("father_name"),
            government_id=r.get("government_id"),
        ),
        membership_start=r.get("membership_start"),
        membership_end=r.get("membership_end"),
        fees=_fees_from_row(r),
        branch_id=r.get("branch_id"),
        seat_id=r.get("seat_id"),
        shift_id=r.get("shift_id"),
        locker_id=r.get("locker_id"),
        is_active=bool(r.get("is_active", True)),
        registration_source=RegistrationSource(r.get("registration_source") or RegistrationSource.DIRECT.value),
        remark=r.get("remark"),
        created_at=r.get("created_at"),
    )


def _fee_params(fees: FeeFields) -> tuple:
    return (
        fees.total_fee,
        fees.amount_paid,
        fees.due_amount,
        fees.cash,
        fees.online,
        fees.security_money,
        fees.discount,
        fees.advance_applied,
    )


class MySQLStudentRepository(StudentRepository):
    def __init__(self, cur):
        self._cur = cur

    def get_by_id(self, student_id: int) -> Optional[Student]:
        self._cur.execute(f"SELECT {_STUDENT_COLUMNS} FROM students WHERE student_id=%s", (int(student_id),))
        row = fetchone(self._cur)
        return _student_from_row(row) if row else None

    def lock_for_update(self, student_id: int) -> Optional[Student]:
        self._cur.execute(
            f"SELECT {_STUDENT_COLUMNS} FROM students WHERE student_id=%s FOR UPDATE",
            (int(student_id),),
        )
        row = fetchone(self._cur)
        return _student_from_row(row) if row else None

    def get_by_phone(self, *, library_id: int, phone: str) -> Optional[Student]:
        self._cur.execute(
            f"SELECT {_STUDENT_COLUMNS} FROM students WHERE library_id=%s AND phone=%s",
            (int(library_id), phone),
        )
        row = fetchone(self._cur)
        return _student_from_row(row) if row else None

    def create(
        self,
        *,
        library_id: int,
        profile: StudentProfile,
        membership_start: date,
        membership_end: date,
        fees: FeeFields,
        branch_id: Optional[int],
        seat_id: Optional[int],
        shift_id: Optional[int],
        locker_id: Optional[int],
        registration_source: RegistrationSource,
        remark: Optional[str] = None,
    ) -> int:
        self._cur.execute(
            """
            INSERT INTO students(
                library_id, branch_id, name, phone, email, address,
                registration_number, father_name, government_id,
                membership_start, membership_end,
                total_fee, amount_paid, due_amount, cash, online, security_money, discount, advance_applied,
                seat_id, shift_id, locker_id, is_active, registration_source, remark
            )
            VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,1,%s,%s)
            """,
            (
                int(library_id),
                branch_id,
                profile.name,
                profile.phone,
                profile.email,
                profile.address,
                profile.registration_number,
                profile.father_name,
                profile.government_id,
                membership_start,
                membership_end,
                *_fee_params(fees),
                seat_id,
                shift_id,
                locker_id,
                registration_source.value,
                remark,
            ),
        )
        return int(self._cur.lastrowid)

    def update_membership(
        self,
        *,
        student_id: int,
        membership_start: date,
        membership_end: date,
        fees: FeeFields,
        branch_id: Optional[int],
        seat_id: Optional[int],
        shift_id: Optional[int],
        locker_id: Optional[int],
        remark: Optional[str] = None,
    ) -> bool:
        self._cur.execute(
            """
            UPDATE students
            SET membership_start=%s, membership_end=%s,
                total_fee=%s, amount_paid=%s, due_amount=%s, cash=%s, online=%s,
                security_money=%s, discount=%s, advance_applied=%s,
                branch_id=%s, seat_id=%s, shift_id=%s, locker_id=%s, remark=%s
            WHERE student_id=%s
            """,
            (
                membership_start,
                membership_end,
                *_fee_params(fees),
                branch_id,
                seat_id,
                shift_id,
                locker_id,
                remark,
                int(student_id),
            ),
        )
        return self._cur.rowcount > 0

    def update_fees(self, *, student_id: int, fees: FeeFields) -> bool:
        self._cur.execute(
            """
            UPDATE students
            SET total_fee=%s, amount_paid=%s, due_amount=%s, cash=%s, online=%s,
                security_money=%s, discount=%s, advance_applied=%s
            WHERE student_id=%s
            """,
            (*_fee_params(fees), int(student_id)),
        )
        return self._cur.rowcount > 0

    def set_active(self, student_id: int, *, is_active: bool) -> bool:
        self._cur.execute(
            "UPDATE students SET is_active=%s WHERE student_id=%s",
            (1 if is_active else 0, int(student_id)),
        )
        return self._cur.rowcount > 0

    def list_for_library(self, library_id: int, *, branch_id: Optional[int] = None) -> Sequence[Student]:
        clauses = ["library_id=%s"]
        params: list[object] = [int(library_id)]
        if branch_id is not None:
            clauses.append("branch_id=%s")
            params.append(int(branch_id))

        self._cur.execute(
            f"""
            SELECT {_STUDENT_COLUMNS}
            FROM students
            WHERE {" AND ".join(clauses)}
            ORDER BY membership_end ASC, student_id ASC
            """,
            tuple(params),
        )
        return [_student_from_row(r) for r in fetchall(self._cur)]


class MySQLStudentAccountRepository(StudentAccountRepository):
    def __init__(self, cur):
        self._cur = cur

    def get_by_phone(self, *, library_id: int, phone: str) -> Optional[StudentAccount]:
        self._cur.execute(
            """
            SELECT account_id, library_id, student_id, phone, password_hash, is_active
            FROM student_accounts
            WHERE library_id=%s AND phone=%s
            """,
            (int(library_id), phone),
        )
        r = fetchone(self._cur)
        if not r:
            return None
        return StudentAccount(
            account_id=int(r["account_id"]),
            library_id=int(r["library_id"]),
            student_id=int(r["student_id"]),
            phone=r["phone"],
            password_hash=r["password_hash"],
            is_active=bool(r.get("is_active", True)),
        )

    def create(self, *, library_id: int, student_id: int, phone: str, password_hash: str) -> int:
        self._cur.execute(
            """
            INSERT INTO student_accounts(library_id, student_id, phone, password_hash, is_active)
            VALUES(%s,%s,%s,%s,1)
            """,
            (int(library_id), int(student_id), phone, password_hash),
        )
        return int(self._cur.lastrowid)
