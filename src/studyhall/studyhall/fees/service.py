from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional, Union

from ..access.session import SessionContext, ensure_same_tenant, require_admin
from ..common.datetime_utils import now_local
from ..common.validators import require_non_negative
from ..core.exceptions import NotFoundError, ValidationError
from ..database.unit_of_work import UnitOfWork, UnitOfWorkFactory
from ..students.model import Student
from .ledger import FeeLedger
from .model import AdvancePayment, FeeFields, FeeInput, LedgerResult, OutstandingDue

logger = logging.getLogger(__name__)


class FeeService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        ledger: FeeLedger | None = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._uow_factory = uow_factory
        self._ledger = ledger or FeeLedger()
        self._clock = clock

    def _student(self, uow: UnitOfWork, session: SessionContext, student_id: int, *, lock: bool = False) -> Student:
        student = uow.students.lock_for_update(student_id) if lock else uow.students.get_by_id(student_id)
        if not student:
            raise NotFoundError("Student not found")
        ensure_same_tenant(session, student.library_id)
        return student

    def collect_payment(
        self,
        session: SessionContext,
        student_id: int,
        *,
        cash=None,
        online=None,
    ) -> LedgerResult:
        """Add a payment to the current period. Overpayment leaves the row unchanged."""
        require_admin(session)
        cash = require_non_negative(cash, "Cash")
        online = require_non_negative(online, "Online")
        if cash + online <= 0:
            raise ValidationError("Payment amount must be greater than zero")

        with self._uow_factory() as uow:
            student = self._student(uow, session, student_id, lock=True)
            current = student.fees
            result = self._ledger.reconcile(
                FeeInput(
                    total_fee=current.total_fee,
                    discount=current.discount,
                    security_money=current.security_money,
                    advance_applied=current.advance_applied,
                    cash=current.cash + cash,
                    online=current.online + online,
                    amount_paid=current.amount_paid + cash + online,
                )
            )
            uow.students.update_fees(student_id=student.student_id, fees=result.fees)

        logger.info(
            "Collected %s (cash %s, online %s) from student %s; due now %s",
            cash + online,
            cash,
            online,
            student_id,
            result.fees.due_amount,
        )
        return result

    def update_fees(
        self,
        session: SessionContext,
        student_id: int,
        fees: Union[FeeInput, FeeFields],
    ) -> LedgerResult:
        require_admin(session)
        result = self._ledger.reconcile(fees)
        with self._uow_factory() as uow:
            student = self._student(uow, session, student_id, lock=True)
            uow.students.update_fees(student_id=student.student_id, fees=result.fees)

        logger.info("Fee fields of student %s rewritten; due now %s", student_id, result.fees.due_amount)
        return result

    def record_advance_payment(
        self,
        session: SessionContext,
        student_id: int,
        amount,
        payment_date: date | None = None,
        *,
        notes: Optional[str] = None,
    ) -> AdvancePayment:
        """Record money paid ahead of the next renewal.

        The student's membership end at the time of payment is stored with it.
        """
        require_admin(session)
        amount = require_non_negative(amount, "Amount")
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")
        payment_date = payment_date or self._clock().date()

        with self._uow_factory() as uow:
            student = self._student(uow, session, student_id)
            payment = uow.advances.create(
                library_id=student.library_id,
                student_id=student.student_id,
                amount=amount,
                payment_date=payment_date,
                membership_expiry=student.membership_end,
                notes=notes,
            )

        logger.info("Advance payment #%s of %s recorded for student %s", payment.payment_id, amount, student_id)
        return payment

    def list_advance_payments(self, session: SessionContext, student_id: int | None = None) -> list[AdvancePayment]:
        require_admin(session)
        with self._uow_factory() as uow:
            if student_id is not None:
                self._student(uow, session, student_id)
            return list(uow.advances.list_for_library(session.library_id, student_id=student_id))

    def list_outstanding(self, session: SessionContext, *, branch_id: int | None = None) -> list[OutstandingDue]:
        """Students with a positive due amount, largest first."""
        require_admin(session)
        with self._uow_factory() as uow:
            students = uow.students.list_for_library(session.library_id, branch_id=branch_id)

        dues = [
            OutstandingDue(
                student_id=s.student_id,
                name=s.name,
                phone=s.phone,
                branch_id=s.branch_id,
                membership_end=s.membership_end,
                total_fee=s.fees.total_fee,
                amount_paid=s.fees.amount_paid,
                due_amount=s.fees.due_amount,
            )
            for s in students
            if s.fees.due_amount > 0
        ]
        return sorted(dues, key=lambda d: (-d.due_amount, d.student_id))
