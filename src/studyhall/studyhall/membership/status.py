from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from ..common.datetime_utils import days_until
from ..core.constants import DEFAULT_EXPIRING_SOON_DAYS
from ..core.enums import MembershipStatus
from ..core.exceptions import ValidationError


def _as_day(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def derive_status(
    membership_end: Optional[date],
    is_active: bool,
    now: Union[date, datetime],
    *,
    threshold_days: int = DEFAULT_EXPIRING_SOON_DAYS,
) -> MembershipStatus:
    """Single source of truth for a student's membership status.

    The manual inactive flag always wins. A student without an end date is
    treated as expired.
    """
    if not is_active:
        return MembershipStatus.INACTIVE
    if membership_end is None:
        return MembershipStatus.EXPIRED

    today = _as_day(now)
    end = _as_day(membership_end)
    if end < today:
        return MembershipStatus.EXPIRED
    if days_until(end, today) <= int(threshold_days):
        return MembershipStatus.EXPIRING_SOON
    return MembershipStatus.ACTIVE


def days_left(membership_end: Optional[date], now: Union[date, datetime]) -> Optional[int]:
    if membership_end is None:
        return None
    return days_until(_as_day(membership_end), _as_day(now))


@dataclass(frozen=True)
class ExpiryWindow:
    """Inclusive range of days-until-expiry, e.g. ExpiryWindow(3, 5)."""

    min_days: int
    max_days: int

    def __post_init__(self):
        if self.min_days < 0 or self.max_days < self.min_days:
            raise ValidationError("Expiry window must satisfy 0 <= min_days <= max_days")

    def contains(self, membership_end: Optional[date], now: Union[date, datetime]) -> bool:
        left = days_left(membership_end, now)
        if left is None:
            return False
        return self.min_days <= left <= self.max_days

    @property
    def label(self) -> str:
        return f"{self.min_days}-{self.max_days} days"
