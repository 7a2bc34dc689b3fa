from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import MembershipStatus
from ..database.mysql_base import fetchall, fetchone
from ..fees.model import FeeFields
from .model import MembershipHistoryRecord
from .repository import MembershipHistoryRepository

_HISTORY_COLUMNS = """
    history_id, student_id, library_id, membership_start, membership_end,
    total_fee, amount_paid, due_amount, cash, online, security_money, discount, advance_applied,
    status, changed_at, branch_id, seat_id, shift_id, locker_id, remark
"""


def _history_from_row(r: dict) -> MembershipHistoryRecord:
    return MembershipHistoryRecord(
        history_id=int(r["history_id"]),
        student_id=int(r["student_id"]),
        library_id=int(r["library_id"]),
        membership_start=r.get("membership_start"),
        membership_end=r.get("membership_end"),
        fees=FeeFields(
            total_fee=r["total_fee"],
            amount_paid=r["amount_paid"],
            due_amount=r["due_amount"],
            cash=r["cash"],
            online=r["online"],
            security_money=r["security_money"],
            discount=r["discount"],
            advance_applied=r["advance_applied"],
        ),
        status=MembershipStatus(r["status"]),
        changed_at=r["changed_at"],
        branch_id=r.get("branch_id"),
        seat_id=r.get("seat_id"),
        shift_id=r.get("shift_id"),
        locker_id=r.get("locker_id"),
        remark=r.get("remark"),
    )


class MySQLMembershipHistoryRepository(MembershipHistoryRepository):
    def __init__(self, cur):
        self._cur = cur

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
        self._cur.execute(
            """
            INSERT INTO student_membership_history(
                student_id, library_id, membership_start, membership_end,
                total_fee, amount_paid, due_amount, cash, online, security_money, discount, advance_applied,
                status, changed_at, branch_id, seat_id, shift_id, locker_id, remark
            )
            VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
            """,
            (
                int(student_id),
                int(library_id),
                membership_start,
                membership_end,
                fees.total_fee,
                fees.amount_paid,
                fees.due_amount,
                fees.cash,
                fees.online,
                fees.security_money,
                fees.discount,
                fees.advance_applied,
                status.value,
                changed_at,
                branch_id,
                seat_id,
                shift_id,
                locker_id,
                remark,
            ),
        )
        return MembershipHistoryRecord(
            history_id=int(self._cur.lastrowid),
            student_id=int(student_id),
            library_id=int(library_id),
            membership_start=membership_start,
            membership_end=membership_end,
            fees=fees,
            status=status,
            changed_at=changed_at,
            branch_id=branch_id,
            seat_id=seat_id,
            shift_id=shift_id,
            locker_id=locker_id,
            remark=remark,
        )

    def get_by_id(self, history_id: int) -> Optional[MembershipHistoryRecord]:
        self._cur.execute(
            f"SELECT {_HISTORY_COLUMNS} FROM student_membership_history WHERE history_id=%s",
            (int(history_id),),
        )
        r = fetchone(self._cur)
        return _history_from_row(r) if r else None

    def list_for_student(self, student_id: int) -> Sequence[MembershipHistoryRecord]:
        self._cur.execute(
            f"""
            SELECT {_HISTORY_COLUMNS}
            FROM student_membership_history
            WHERE student_id=%s
            ORDER BY membership_start DESC, history_id DESC
            """,
            (int(student_id),),
        )
        return [_history_from_row(r) for r in fetchall(self._cur)]
