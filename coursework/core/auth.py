"""
Roles and the authorization predicate.

The identity context (login, sessions) lives outside the engine; every
operation receives an already-authenticated Principal. Which roles may run
which operation is declared once in OPERATION_ROLES and checked once at the
entry of each component operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from coursework.core.errors import Unauthorized, ValidationError


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller."""

    user_id: str
    role: Role

    @classmethod
    def of(cls, user_id: str, role: str | Role) -> Principal:
        if not user_id:
            raise ValidationError("user id is required")
        try:
            return cls(user_id=user_id, role=Role(role))
        except ValueError:
            raise ValidationError(f"unknown role {role!r}", role=str(role)) from None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF


STAFF = frozenset({Role.ADMIN, Role.TEACHER})
ADMIN_ONLY = frozenset({Role.ADMIN})
ANYONE = frozenset(Role)

OPERATION_ROLES: dict[str, frozenset[Role]] = {
    # Catalog
    "create_course": STAFF,
    "remove_course": STAFF,
    # Enrollment
    "request_enrollment": frozenset({Role.STUDENT}),
    "decide_enrollment": STAFF,
    "advance_progress": frozenset({Role.STUDENT}),
    "list_all_enrollments": STAFF,
    # Assessment
    "create_assessment": STAFF,
    "start_attempt": frozenset({Role.STUDENT}),
    # Certificates
    "request_certificate": frozenset({Role.STUDENT}),
    "verify_certificate": ADMIN_ONLY,
    "reject_certificate": ADMIN_ONLY,
    "list_all_certificates": ADMIN_ONLY,
    # Analytics
    "view_analytics": STAFF,
    "view_dashboard": ANYONE,
}


def is_allowed(principal: Principal, operation: str) -> bool:
    """Return True if the principal's role may run the operation."""
    return principal.role in OPERATION_ROLES[operation]


def authorize(principal: Principal, operation: str) -> Principal:
    """Raise Unauthorized unless the principal's role may run the operation."""
    if not is_allowed(principal, operation):
        logger.warning(
            "Denied {} for user {} with role {}",
            operation,
            principal.user_id,
            principal.role.value,
        )
        raise Unauthorized(
            f"role {principal.role.value} may not {operation}",
            operation=operation,
            role=principal.role,
        )
    return principal


def require_owner(user_id: str, owner_id: str, what: str) -> None:
    """Raise Unauthorized unless the user owns the record."""
    if user_id != owner_id:
        raise Unauthorized(f"{what} belongs to another user", user_id=user_id)
