from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..core.enums import Role
from ..core.exceptions import AuthorizationError, TenantMismatchError


@dataclass(frozen=True)
class SessionContext:
    """Caller identity handed to every core operation.

    Resolved by the session provider (owner/staff/student login) and passed
    in explicitly; the core keeps no session state between calls.
    """

    role: Role
    library_id: int
    user_id: Optional[int] = None
    student_id: Optional[int] = None
    permissions: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.OWNER, Role.STAFF)

    @property
    def is_owner(self) -> bool:
        return self.role == Role.OWNER


def require_admin(session: SessionContext) -> None:
    if not session.is_admin:
        raise AuthorizationError("Only the library owner or staff can do this")


def ensure_same_tenant(session: SessionContext, library_id: int) -> None:
    if int(library_id) != int(session.library_id):
        raise TenantMismatchError("This record belongs to a different library")


def ensure_can_act_for(session: SessionContext, *, student_id: int, library_id: int) -> None:
    """Students may only act on themselves; admins on anyone in their library."""
    ensure_same_tenant(session, library_id)
    if session.role == Role.STUDENT and session.student_id != int(student_id):
        raise AuthorizationError("Students can only access their own records")
