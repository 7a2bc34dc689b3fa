from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from ..database.mysql_base import fetchall, fetchone
from .model import AdvancePayment
from .repository import AdvancePaymentRepository

_ADVANCE_COLUMNS = "payment_id, library_id, student_id, amount, payment_date, membership_expiry, notes, created_at"


def _advance_from_row(r: dict) -> AdvancePayment:
    return AdvancePayment(
        payment_id=int(r["payment_id"]),
        library_id=int(r["library_id"]),
        student_id=int(r["student_id"]),
        amount=r["amount"],
        payment_date=r["payment_date"],
        membership_expiry=r.get("membership_expiry"),
        notes=r.get("notes"),
        created_at=r.get("created_at"),
    )


class MySQLAdvancePaymentRepository(AdvancePaymentRepository):
    def __init__(self, cur):
        self._cur = cur

    def create(
        self,
        *,
        library_id: int,
        student_id: int,
        amount: Decimal,
        payment_date: date,
        membership_expiry: Optional[date],
        notes: Optional[str] = None,
    ) -> AdvancePayment:
        self._cur.execute(
            """
            INSERT INTO advance_payments(library_id, student_id, amount, payment_date, membership_expiry, notes)
            VALUES(%s,%s,%s,%s,%s,%s)
            """,
            (int(library_id), int(student_id), amount, payment_date, membership_expiry, notes),
        )
        payment_id = int(self._cur.lastrowid)
        self._cur.execute(f"SELECT {_ADVANCE_COLUMNS} FROM advance_payments WHERE payment_id=%s", (payment_id,))
        return _advance_from_row(fetchone(self._cur))

    def list_for_library(self, library_id: int, *, student_id: Optional[int] = None) -> Sequence[AdvancePayment]:
        clauses = ["library_id=%s"]
        params: list[object] = [int(library_id)]
        if student_id is not None:
            clauses.append("student_id=%s")
            params.append(int(student_id))

        self._cur.execute(
            f"""
            SELECT {_ADVANCE_COLUMNS}
            FROM advance_payments
            WHERE {" AND ".join(clauses)}
            ORDER BY payment_date DESC, payment_id DESC
            """,
            tuple(params),
        )
        return [_advance_from_row(r) for r in fetchall(self._cur)]
