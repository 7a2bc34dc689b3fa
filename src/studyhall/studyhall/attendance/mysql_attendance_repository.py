from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import AttendanceAction, EventSource
from ..database.mysql_base import fetchall, fetchone
from .model import AttendanceEvent, DayAggregate, OrgAttendanceFilter
from .repository import AttendanceRepository

_EVENT_COLUMNS = "event_id, library_id, student_id, event_date, day_seq, action, source, notes, qr_payload, created_at"


def _event_from_row(r: dict) -> AttendanceEvent:
    return AttendanceEvent(
        event_id=int(r["event_id"]),
        library_id=int(r["library_id"]),
        student_id=int(r["student_id"]),
        event_date=r["event_date"],
        day_seq=int(r["day_seq"]),
        action=AttendanceAction(r["action"].strip()),
        created_at=r["created_at"],
        source=EventSource(r.get("source") or EventSource.TOGGLE.value),
        notes=r.get("notes"),
        qr_payload=r.get("qr_payload"),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, cur):
        self._cur = cur

    def list_for_day(self, *, student_id: int, day: date) -> Sequence[AttendanceEvent]:
        self._cur.execute(
            f"""
            SELECT {_EVENT_COLUMNS}
            FROM student_attendance
            WHERE student_id=%s AND event_date=%s
            ORDER BY day_seq ASC
            """,
            (int(student_id), day),
        )
        return [_event_from_row(r) for r in fetchall(self._cur)]

    def list_between(self, *, student_id: int, start: date, end: date) -> Sequence[AttendanceEvent]:
        self._cur.execute(
            f"""
            SELECT {_EVENT_COLUMNS}
            FROM student_attendance
            WHERE student_id=%s AND event_date BETWEEN %s AND %s
            ORDER BY event_date ASC, day_seq ASC
            """,
            (int(student_id), start, end),
        )
        return [_event_from_row(r) for r in fetchall(self._cur)]

    def recent_days(self, *, student_id: int, limit: int) -> Sequence[date]:
        self._cur.execute(
            """
            SELECT DISTINCT event_date
            FROM student_attendance
            WHERE student_id=%s
            ORDER BY event_date DESC
            LIMIT %s
            """,
            (int(student_id), int(limit)),
        )
        return [r["event_date"] for r in fetchall(self._cur)]

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
        self._cur.execute(
            """
            INSERT INTO student_attendance(
                library_id, student_id, event_date, day_seq, action, source, notes, qr_payload, created_at
            )
            VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
            """,
            (
                int(library_id),
                int(student_id),
                event_date,
                int(day_seq),
                action.value,
                source.value,
                notes,
                qr_payload,
                created_at,
            ),
        )
        event_id = int(self._cur.lastrowid)
        self._cur.execute(f"SELECT {_EVENT_COLUMNS} FROM student_attendance WHERE event_id=%s", (event_id,))
        return _event_from_row(fetchone(self._cur))

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
        clauses = ["a.library_id=%s", "a.event_date BETWEEN %s AND %s"]
        params: list[object] = [int(library_id), start, end]

        search = (filters.search or "").strip()
        if search:
            clauses.append("(s.name LIKE %s OR s.phone LIKE %s OR s.registration_number LIKE %s)")
            like = f"%{search}%"
            params.extend([like, like, like])
        if filters.branch_id is not None:
            clauses.append("s.branch_id=%s")
            params.append(int(filters.branch_id))

        where = " AND ".join(clauses)

        self._cur.execute(
            f"""
            SELECT COUNT(*) AS total FROM (
                SELECT a.student_id, a.event_date
                FROM student_attendance a
                JOIN students s ON s.student_id = a.student_id
                WHERE {where}
                GROUP BY a.student_id, a.event_date
            ) g
            """,
            tuple(params),
        )
        total = int((fetchone(self._cur) or {}).get("total") or 0)

        self._cur.execute(
            f"""
            SELECT
                s.student_id, s.name, s.registration_number, s.phone, s.branch_id,
                s.membership_end, s.is_active, s.due_amount,
                a.event_date,
                MIN(a.created_at) AS first_at,
                MAX(a.created_at) AS last_at,
                COUNT(a.event_id) AS total_scans
            FROM student_attendance a
            JOIN students s ON s.student_id = a.student_id
            WHERE {where}
            GROUP BY s.student_id, s.name, s.registration_number, s.phone, s.branch_id,
                     s.membership_end, s.is_active, s.due_amount, a.event_date
            ORDER BY a.event_date DESC, first_at DESC
            LIMIT %s OFFSET %s
            """,
            tuple(params + [int(limit), int(offset)]),
        )
        rows = [
            DayAggregate(
                student_id=int(r["student_id"]),
                student_name=r["name"],
                registration_number=r.get("registration_number"),
                phone=r.get("phone"),
                branch_id=r.get("branch_id"),
                day=r["event_date"],
                first_at=r["first_at"],
                last_at=r["last_at"],
                total_scans=int(r["total_scans"]),
                membership_end=r.get("membership_end"),
                is_active=bool(r.get("is_active", True)),
                due_amount=r["due_amount"],
            )
            for r in fetchall(self._cur)
        ]
        return rows, total
