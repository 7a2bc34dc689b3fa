from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class FeeFields:
    """Fee ledger of one membership period."""

    total_fee: Decimal = _ZERO
    amount_paid: Decimal = _ZERO
    due_amount: Decimal = _ZERO
    cash: Decimal = _ZERO
    online: Decimal = _ZERO
    security_money: Decimal = _ZERO
    discount: Decimal = _ZERO
    advance_applied: Decimal = _ZERO

    @property
    def net_fee(self) -> Decimal:
        return self.total_fee - self.discount

    @property
    def split_total(self) -> Decimal:
        return self.cash + self.online + self.advance_applied


@dataclass(frozen=True)
class FeeInput:
    """Fee fields as supplied by a caller, before reconciliation.

    ``amount_paid`` and ``due_amount`` are optional: the ledger derives the
    former from the payment split and always recomputes the latter.
    """

    total_fee: object = None
    amount_paid: object = None
    due_amount: object = None
    cash: object = None
    online: object = None
    security_money: object = None
    discount: object = None
    advance_applied: object = None


@dataclass(frozen=True)
class LedgerResult:
    fees: FeeFields
    warnings: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AdvancePayment:
    payment_id: int
    library_id: int
    student_id: int
    amount: Decimal
    payment_date: date
    membership_expiry: Optional[date]
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class OutstandingDue:
    """Read-model for the collection-due list."""

    student_id: int
    name: str
    phone: Optional[str]
    branch_id: Optional[int]
    membership_end: Optional[date]
    total_fee: Decimal
    amount_paid: Decimal
    due_amount: Decimal
