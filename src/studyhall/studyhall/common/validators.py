from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Optional

from ..core.constants import MONEY_QUANT
from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def to_money(value, field_name: str) -> Decimal:
    """Coerce a user supplied amount to a 2-place Decimal (no sign checks)."""
    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value).quantize(MONEY_QUANT)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field_name} is not a valid amount")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} is not a valid amount")
    return amount


def require_non_negative(value, field_name: str) -> Decimal:
    amount = to_money(value, field_name)
    if amount < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return amount


def optional_money(value, field_name: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return require_non_negative(value, field_name)
