from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from .model import AdvancePayment


class AdvancePaymentRepository(Protocol):
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
        raise NotImplementedError

    def list_for_library(self, library_id: int, *, student_id: Optional[int] = None) -> Sequence[AdvancePayment]:
        raise NotImplementedError
