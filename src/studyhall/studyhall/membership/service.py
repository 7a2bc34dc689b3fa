from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional, Union

from werkzeug.security import generate_password_hash

from ..access.session import SessionContext, ensure_can_act_for, ensure_same_tenant, require_admin
from ..common.datetime_utils import now_local
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_EXPIRING_SOON_DAYS, DEFAULT_IMMINENT_EXPIRY_DAYS
from ..core.enums import MembershipStatus, RegistrationSource
from ..core.exceptions import InvalidDateRangeError, NotFoundError, ValidationError
from ..database.unit_of_work import UnitOfWork, UnitOfWorkFactory
from ..fees.ledger import FeeLedger
from ..students.model import Student
from .model import (
    Admission,
    AdmissionResult,
    HistoryMonth,
    MembershipHistory,
    MembershipHistoryRecord,
    MembershipTerms,
    MembershipView,
    RenewalResult,
)
from .status import ExpiryWindow, days_left, derive_status

logger = logging.getLogger(__name__)


def _validate_terms(terms: MembershipTerms) -> None:
    if not terms.membership_start or not terms.membership_end:
        raise ValidationError("Membership start and end dates are required")
    if terms.membership_start > terms.membership_end:
        raise InvalidDateRangeError("Membership start date must be on or before the end date")


def _keep(new: Optional[int], current: Optional[int]) -> Optional[int]:
    return current if new is None else new


class MembershipService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        ledger: FeeLedger | None = None,
        clock: Callable[[], datetime] = now_local,
        expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS,
        imminent_expiry_days: int = DEFAULT_IMMINENT_EXPIRY_DAYS,
        provision_accounts: bool = True,
        password_hasher: Callable[[str], str] = generate_password_hash,
    ):
        self._uow_factory = uow_factory
        self._ledger = ledger or FeeLedger()
        self._clock = clock
        self._expiring_soon_days = int(expiring_soon_days)
        self._imminent_expiry_days = int(imminent_expiry_days)
        self._provision_accounts = bool(provision_accounts)
        self._hash_password = password_hasher

    def _to_view(self, student: Student, now: Union[date, datetime], threshold_days: int) -> MembershipView:
        return MembershipView(
            student_id=student.student_id,
            name=student.name,
            phone=student.phone,
            branch_id=student.branch_id,
            membership_end=student.membership_end,
            status=derive_status(student.membership_end, student.is_active, now, threshold_days=threshold_days),
            days_left=days_left(student.membership_end, now),
            due_amount=student.fees.due_amount,
        )

    def _lock_student(self, uow: UnitOfWork, session: SessionContext, student_id: int) -> Student:
        student = uow.students.lock_for_update(student_id)
        if not student:
            raise NotFoundError("Student not found")
        ensure_same_tenant(session, student.library_id)
        return student

    def get_status(
        self,
        session: SessionContext,
        student_id: int,
        *,
        threshold_days: int | None = None,
        now: datetime | None = None,
    ) -> MembershipView:
        now = now or self._clock()
        with self._uow_factory() as uow:
            student = uow.students.get_by_id(student_id)
            if not student:
                raise NotFoundError("Student not found")
            ensure_can_act_for(session, student_id=student.student_id, library_id=student.library_id)
        return self._to_view(student, now, self._threshold(threshold_days))

    def _threshold(self, threshold_days: int | None) -> int:
        return self._expiring_soon_days if threshold_days is None else int(threshold_days)

    def _snapshot(self, uow: UnitOfWork, student: Student, now: datetime) -> MembershipHistoryRecord:
        return uow.history.insert(
            student_id=student.student_id,
            library_id=student.library_id,
            membership_start=student.membership_start,
            membership_end=student.membership_end,
            fees=student.fees,
            status=derive_status(
                student.membership_end, student.is_active, now, threshold_days=self._expiring_soon_days
            ),
            changed_at=now,
            branch_id=student.branch_id,
            seat_id=student.seat_id,
            shift_id=student.shift_id,
            locker_id=student.locker_id,
            remark=student.remark,
        )

    def _maybe_provision_account(self, uow: UnitOfWork, session: SessionContext, student: Student) -> bool:
        """Create the portal login for students the owner added directly.

        Phone number is both login and initial password. Existing accounts for
        the same library and phone are left untouched.
        """
        if not self._provision_accounts or not session.is_owner:
            return False
        if student.registration_source is not RegistrationSource.DIRECT:
            return False
        phone = (student.phone or "").strip()
        if not phone:
            return False
        if uow.accounts.get_by_phone(library_id=student.library_id, phone=phone):
            return False

        uow.accounts.create(
            library_id=student.library_id,
            student_id=student.student_id,
            phone=phone,
            password_hash=self._hash_password(phone),
        )
        logger.info("Provisioned portal account for student %s", student.student_id)
        return True

    def renew(
        self,
        session: SessionContext,
        student_id: int,
        terms: MembershipTerms,
        *,
        now: datetime | None = None,
    ) -> RenewalResult:
        """Snapshot the current period into history, then apply the new one.

        Runs as one transaction: if any step fails no history row remains.
        """
        require_admin(session)
        _validate_terms(terms)
        ledger = self._ledger.reconcile(terms.fees)
        now = now or self._clock()

        with self._uow_factory() as uow:
            current = self._lock_student(uow, session, student_id)
            history = self._snapshot(uow, current, now)

            updated = uow.students.update_membership(
                student_id=current.student_id,
                membership_start=terms.membership_start,
                membership_end=terms.membership_end,
                fees=ledger.fees,
                branch_id=_keep(terms.branch_id, current.branch_id),
                seat_id=_keep(terms.seat_id, current.seat_id),
                shift_id=_keep(terms.shift_id, current.shift_id),
                locker_id=_keep(terms.locker_id, current.locker_id),
                remark=terms.remark if terms.remark is not None else current.remark,
            )
            if not updated:
                raise NotFoundError("Student not found")

            account_created = self._maybe_provision_account(uow, session, current)
            student = uow.students.get_by_id(current.student_id)

        logger.info(
            "Renewed membership of student %s until %s (history #%s)",
            student_id,
            terms.membership_end,
            history.history_id,
        )
        return RenewalResult(
            student=student,
            history=history,
            warnings=ledger.warnings,
            account_created=account_created,
        )

    def admit(self, session: SessionContext, admission: Admission, *, now: datetime | None = None) -> AdmissionResult:
        require_admin(session)
        require_non_empty(admission.profile.name, "Name")
        _validate_terms(admission.terms)
        ledger = self._ledger.reconcile(admission.terms.fees)
        now = now or self._clock()
        terms = admission.terms
        phone = (admission.profile.phone or "").strip() or None

        with self._uow_factory() as uow:
            if phone and uow.students.get_by_phone(library_id=session.library_id, phone=phone):
                raise ValidationError("A student with this phone number already exists")

            student_id = uow.students.create(
                library_id=session.library_id,
                profile=admission.profile,
                membership_start=terms.membership_start,
                membership_end=terms.membership_end,
                fees=ledger.fees,
                branch_id=terms.branch_id,
                seat_id=terms.seat_id,
                shift_id=terms.shift_id,
                locker_id=terms.locker_id,
                registration_source=admission.registration_source,
                remark=terms.remark,
            )
            student = uow.students.get_by_id(student_id)
            history = self._snapshot(uow, student, now)
            account_created = self._maybe_provision_account(uow, session, student)

        logger.info("Admitted student %s to library %s", student_id, session.library_id)
        return AdmissionResult(
            student=student,
            history=history,
            warnings=ledger.warnings,
            account_created=account_created,
        )

    def set_active(
        self,
        session: SessionContext,
        student_id: int,
        is_active: bool,
        *,
        now: datetime | None = None,
    ) -> MembershipView:
        require_admin(session)
        now = now or self._clock()
        with self._uow_factory() as uow:
            current = self._lock_student(uow, session, student_id)
            uow.students.set_active(current.student_id, is_active=bool(is_active))
            student = uow.students.get_by_id(current.student_id)

        logger.info("Student %s marked %s", student_id, "active" if is_active else "inactive")
        return self._to_view(student, now, self._expiring_soon_days)

    def list_history(self, session: SessionContext, student_id: int) -> MembershipHistory:
        """All periods newest first, grouped by month of membership start."""
        with self._uow_factory() as uow:
            student = uow.students.get_by_id(student_id)
            if not student:
                raise NotFoundError("Student not found")
            ensure_can_act_for(session, student_id=student.student_id, library_id=student.library_id)
            records = list(uow.history.list_for_student(student.student_id))

        issues = {}
        for r in records:
            problems = self._ledger.audit(r.fees)
            if problems:
                issues[r.history_id] = problems
        if issues:
            logger.warning("Membership history of student %s has %s inconsistent rows", student_id, len(issues))

        return MembershipHistory(records=records, months=self._summarize_months(records), issues=issues)

    @staticmethod
    def _summarize_months(records: list[MembershipHistoryRecord]) -> list[HistoryMonth]:
        buckets: dict[str, list[MembershipHistoryRecord]] = {}
        for r in records:
            key = r.membership_start.strftime("%Y-%m") if r.membership_start else "unknown"
            buckets.setdefault(key, []).append(r)

        months = []
        for key, rows in buckets.items():
            start = rows[0].membership_start
            months.append(
                HistoryMonth(
                    month=key,
                    label=start.strftime("%B %Y") if start else "Unknown",
                    records=rows,
                    total_fee=sum((r.fees.total_fee for r in rows), Decimal("0.00")),
                    total_paid=sum((r.fees.amount_paid for r in rows), Decimal("0.00")),
                    total_due=sum((r.fees.due_amount for r in rows), Decimal("0.00")),
                )
            )
        return months

    def list_by_status(
        self,
        session: SessionContext,
        status: Union[MembershipStatus, str],
        *,
        threshold_days: int | None = None,
        branch_id: int | None = None,
        now: datetime | None = None,
    ) -> list[MembershipView]:
        require_admin(session)
        try:
            status = MembershipStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown membership status: {status}")
        now = now or self._clock()
        threshold = self._threshold(threshold_days)

        with self._uow_factory() as uow:
            students = uow.students.list_for_library(session.library_id, branch_id=branch_id)

        views = (self._to_view(s, now, threshold) for s in students)
        return [v for v in views if v.status is status]

    def list_expiring(
        self,
        session: SessionContext,
        window: ExpiryWindow | None = None,
        *,
        branch_id: int | None = None,
        now: datetime | None = None,
    ) -> list[MembershipView]:
        """Active students whose membership ends within the window, soonest first."""
        require_admin(session)
        window = window or ExpiryWindow(0, self._imminent_expiry_days)
        now = now or self._clock()

        with self._uow_factory() as uow:
            students = uow.students.list_for_library(session.library_id, branch_id=branch_id)

        views = [
            self._to_view(s, now, window.max_days)
            for s in students
            if s.is_active and window.contains(s.membership_end, now)
        ]
        return sorted(views, key=lambda v: (v.days_left, v.student_id))
