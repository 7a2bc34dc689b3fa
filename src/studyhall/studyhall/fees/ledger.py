from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Union

from ..common.validators import optional_money, require_non_negative
from ..core.constants import MONEY_TOLERANCE
from ..core.enums import SplitPolicy
from ..core.exceptions import OverpaymentError, ValidationError
from .model import FeeFields, FeeInput, LedgerResult

logger = logging.getLogger(__name__)

_LABELS = {
    "total_fee": "Total fee",
    "amount_paid": "Amount paid",
    "due_amount": "Due amount",
    "cash": "Cash",
    "online": "Online",
    "security_money": "Security money",
    "discount": "Discount",
    "advance_applied": "Advance applied",
}


def _as_input(fees: Union[FeeInput, FeeFields]) -> FeeInput:
    if isinstance(fees, FeeInput):
        return fees
    return FeeInput(**{f.name: getattr(fees, f.name) for f in fields(FeeFields)})


@dataclass
class FeeLedger:
    """Validates and reconciles the fee fields of one membership period.

    Every write of a period (admission, renewal, payment, manual edit) goes
    through ``reconcile``; the stored due amount is always recomputed here.
    """

    split_policy: SplitPolicy = SplitPolicy.STRICT

    def reconcile(self, fees: Union[FeeInput, FeeFields]) -> LedgerResult:
        raw = _as_input(fees)
        warnings: list[str] = []

        total_fee = require_non_negative(raw.total_fee, _LABELS["total_fee"])
        discount = require_non_negative(raw.discount, _LABELS["discount"])
        security_money = require_non_negative(raw.security_money, _LABELS["security_money"])
        advance_applied = require_non_negative(raw.advance_applied, _LABELS["advance_applied"])
        cash = require_non_negative(raw.cash, _LABELS["cash"])
        online = require_non_negative(raw.online, _LABELS["online"])
        supplied_paid = optional_money(raw.amount_paid, _LABELS["amount_paid"])
        supplied_due = optional_money(raw.due_amount, _LABELS["due_amount"])

        if discount > total_fee:
            raise ValidationError("Discount cannot be larger than the total fee")

        split_recorded = raw.cash not in (None, "") or raw.online not in (None, "")
        split_total = cash + online + advance_applied
        amount_paid = supplied_paid if supplied_paid is not None else split_total

        net_fee = total_fee - discount
        due_amount = net_fee - amount_paid
        if due_amount < 0:
            raise OverpaymentError(
                f"Amount paid ({amount_paid}) exceeds total fee minus discount ({net_fee}); "
                "record the excess as an advance payment or security money"
            )

        if supplied_due is not None and abs(supplied_due - due_amount) > MONEY_TOLERANCE:
            warnings.append(f"Due amount corrected from {supplied_due} to {due_amount}")

        if not split_recorded and abs(split_total - amount_paid) > MONEY_TOLERANCE:
            if self.split_policy is SplitPolicy.STRICT:
                raise ValidationError("Record the cash/online split of the amount paid")
            warnings.append(f"Cash/online split not recorded for amount paid ({amount_paid})")
        elif split_recorded and abs(split_total - amount_paid) > MONEY_TOLERANCE:
            message = f"Cash + online ({split_total}) does not match amount paid ({amount_paid})"
            if self.split_policy is SplitPolicy.STRICT:
                raise ValidationError(message)
            warnings.append(message)

        for w in warnings:
            logger.warning("Fee ledger: %s", w)

        return LedgerResult(
            fees=FeeFields(
                total_fee=total_fee,
                amount_paid=amount_paid,
                due_amount=due_amount,
                cash=cash,
                online=online,
                security_money=security_money,
                discount=discount,
                advance_applied=advance_applied,
            ),
            warnings=tuple(warnings),
        )

    def audit(self, fees: FeeFields) -> list[str]:
        """Problems of an already stored period. Never raises."""
        issues: list[str] = []
        for f in fields(FeeFields):
            if getattr(fees, f.name) < 0:
                issues.append(f"{_LABELS[f.name]} is negative")

        expected_due = max(fees.net_fee - fees.amount_paid, 0)
        if abs(fees.due_amount - expected_due) > MONEY_TOLERANCE:
            issues.append(f"Due amount {fees.due_amount} should be {expected_due}")
        if fees.amount_paid > fees.net_fee + MONEY_TOLERANCE:
            issues.append("Amount paid exceeds total fee minus discount")
        if fees.split_total and abs(fees.split_total - fees.amount_paid) > MONEY_TOLERANCE:
            issues.append(f"Cash + online ({fees.split_total}) does not match amount paid ({fees.amount_paid})")
        return issues
