"""Cross-cutting pieces: failure taxonomy, roles, logging."""

from .auth import OPERATION_ROLES, Principal, Role, authorize, is_allowed, require_owner
from .errors import ErrorKind, LMSError

__all__ = [
    "ErrorKind",
    "LMSError",
    "OPERATION_ROLES",
    "Principal",
    "Role",
    "authorize",
    "is_allowed",
    "require_owner",
]
