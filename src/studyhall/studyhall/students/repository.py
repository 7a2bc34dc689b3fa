from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import RegistrationSource
from ..fees.model import FeeFields
from .model import Student, StudentAccount, StudentProfile


class StudentRepository(Protocol):
    """Repository interface for Student.

    Note (DIP): services depend on this interface, not on a concrete DB.
    """

    def get_by_id(self, student_id: int) -> Optional[Student]:
        raise NotImplementedError

    def lock_for_update(self, student_id: int) -> Optional[Student]:
        """Read the row and hold a write lock on it until the transaction ends."""

        raise NotImplementedError

    def get_by_phone(self, *, library_id: int, phone: str) -> Optional[Student]:
        raise NotImplementedError

    def create(
        self,
        *,
        library_id: int,
        profile: StudentProfile,
        membership_start: date,
        membership_end: date,
        fees: FeeFields,
        branch_id: Optional[int],
        seat_id: Optional[int],
        shift_id: Optional[int],
        locker_id: Optional[int],
        registration_source: RegistrationSource,
        remark: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def update_membership(
        self,
        *,
        student_id: int,
        membership_start: date,
        membership_end: date,
        fees: FeeFields,
        branch_id: Optional[int],
        seat_id: Optional[int],
        shift_id: Optional[int],
        locker_id: Optional[int],
        remark: Optional[str] = None,
    ) -> bool:
        raise NotImplementedError

    def update_fees(self, *, student_id: int, fees: FeeFields) -> bool:
        raise NotImplementedError

    def set_active(self, student_id: int, *, is_active: bool) -> bool:
        raise NotImplementedError

    def list_for_library(self, library_id: int, *, branch_id: Optional[int] = None) -> Sequence[Student]:
        raise NotImplementedError


class StudentAccountRepository(Protocol):
    def get_by_phone(self, *, library_id: int, phone: str) -> Optional[StudentAccount]:
        raise NotImplementedError

    def create(self, *, library_id: int, student_id: int, phone: str, password_hash: str) -> int:
        raise NotImplementedError
