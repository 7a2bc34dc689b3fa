from datetime import date, datetime

import pytest

from src.studyhall.studyhall.core.enums import MembershipStatus
from src.studyhall.studyhall.core.exceptions import ValidationError
from src.studyhall.studyhall.membership.status import ExpiryWindow, days_left, derive_status

NOW = datetime(2026, 10, 19, 18, 30)


def test_inactive_wins_over_future_end():
    assert derive_status(date(2027, 1, 1), False, NOW) == MembershipStatus.INACTIVE


def test_inactive_wins_over_past_end():
    assert derive_status(date(2026, 1, 1), False, NOW) == MembershipStatus.INACTIVE


@pytest.mark.parametrize(
    "end, threshold, expected",
    [
        (date(2026, 10, 18), 30, MembershipStatus.EXPIRED),
        (date(2026, 10, 19), 2, MembershipStatus.EXPIRING_SOON),
        (date(2026, 10, 21), 2, MembershipStatus.EXPIRING_SOON),
        (date(2026, 10, 22), 2, MembershipStatus.ACTIVE),
        (date(2026, 11, 18), 30, MembershipStatus.EXPIRING_SOON),
        (date(2026, 11, 19), 30, MembershipStatus.ACTIVE),
        (None, 30, MembershipStatus.EXPIRED),
    ],
)
def test_status_by_end_date(end, threshold, expected):
    assert derive_status(end, True, NOW, threshold_days=threshold) == expected


def test_expiring_soon_still_grants_access():
    assert MembershipStatus.EXPIRING_SOON.grants_access
    assert MembershipStatus.ACTIVE.grants_access
    assert not MembershipStatus.EXPIRED.grants_access
    assert not MembershipStatus.INACTIVE.grants_access


def test_days_left():
    assert days_left(date(2026, 10, 24), NOW) == 5
    assert days_left(date(2026, 10, 17), NOW.date()) == -2
    assert days_left(None, NOW) is None


def test_expiry_windows_are_independent():
    end = date(2026, 10, 23)

    assert ExpiryWindow(3, 5).contains(end, NOW)
    assert ExpiryWindow(1, 7).contains(end, NOW)
    assert not ExpiryWindow(1, 2).contains(end, NOW)
    assert not ExpiryWindow(0, 30).contains(None, NOW)
    assert ExpiryWindow(5, 7).label == "5-7 days"


@pytest.mark.parametrize("lo, hi", [(-1, 2), (5, 3)])
def test_invalid_window(lo, hi):
    with pytest.raises(ValidationError):
        ExpiryWindow(lo, hi)
