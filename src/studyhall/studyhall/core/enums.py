from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller role resolved by the session provider."""

    OWNER = "owner"
    STAFF = "staff"
    STUDENT = "student"


class AttendanceAction(str, Enum):
    """Direction of a single attendance event."""

    IN = "in"
    OUT = "out"

    @property
    def opposite(self) -> "AttendanceAction":
        return AttendanceAction.OUT if self is AttendanceAction.IN else AttendanceAction.IN


class EventSource(str, Enum):
    TOGGLE = "toggle"
    QR = "qr"
    MANUAL = "manual"


class CurrentStatus(str, Enum):
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"


class DayStatus(str, Enum):
    """Status of one calendar day derived from its events."""

    ABSENT = "Absent"
    ONGOING = "Ongoing"
    COMPLETED = "Completed"

    @property
    def is_present(self) -> bool:
        return self is not DayStatus.ABSENT


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    INACTIVE = "inactive"

    @property
    def grants_access(self) -> bool:
        """ExpiringSoon is still Active for access-control purposes."""
        return self in (MembershipStatus.ACTIVE, MembershipStatus.EXPIRING_SOON)


class RegistrationSource(str, Enum):
    DIRECT = "direct"
    ADMISSION_REQUEST = "admission_request"
    SELF_REGISTRATION = "self_registration"


class SplitPolicy(str, Enum):
    """How a cash + online mismatch against amount paid is treated."""

    STRICT = "strict"
    WARN = "warn"


class HistoryView(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"
