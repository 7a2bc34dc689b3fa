from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..core.enums import RegistrationSource
from ..fees.model import FeeFields


@dataclass(frozen=True)
class StudentProfile:
    """Identity fields captured on admission."""

    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    registration_number: Optional[str] = None
    father_name: Optional[str] = None
    government_id: Optional[str] = None


@dataclass(frozen=True)
class Student:
    """Domain entity: a person enrolled at a library (tenant).

    The membership window and fee fields here describe the current period;
    earlier periods live in membership history.
    """

    student_id: int
    library_id: int
    profile: StudentProfile
    membership_start: Optional[date]
    membership_end: Optional[date]
    fees: FeeFields = field(default_factory=FeeFields)
    branch_id: Optional[int] = None
    seat_id: Optional[int] = None
    shift_id: Optional[int] = None
    locker_id: Optional[int] = None
    is_active: bool = True
    registration_source: RegistrationSource = RegistrationSource.DIRECT
    remark: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def phone(self) -> Optional[str]:
        return self.profile.phone


@dataclass(frozen=True)
class StudentAccount:
    """Student portal login. Phone number is the login identifier."""

    account_id: int
    library_id: int
    student_id: int
    phone: str
    password_hash: str
    is_active: bool = True
