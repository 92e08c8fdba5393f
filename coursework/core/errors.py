"""
Typed failures raised by the coursework engine.

Every failure carries an ErrorKind so callers (API, CLI, UI) can map it to
their own presentation without inspecting exception classes. None of these
messages are meant for end users.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure taxonomy shared by every component."""

    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    DUPLICATE_REQUEST = "duplicate_request"
    VALIDATION_ERROR = "validation_error"
    PRECONDITION_FAILED = "precondition_failed"
    STORAGE_UNAVAILABLE = "storage_unavailable"


class LMSError(Exception):
    """Base class for all recoverable engine failures."""

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def code(self) -> str:
        """Specific failure name, e.g. 'DuplicatePending'."""
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        """Structured form handed to presentation layers."""
        payload: dict[str, Any] = {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = {k: _plain(v) for k, v in self.details.items()}
        return payload


def _plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    return value


# =============================================================================
# Kinds
# =============================================================================


class Unauthorized(LMSError):
    kind = ErrorKind.UNAUTHORIZED


class NotFound(LMSError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, collection: str, entity_id: str):
        super().__init__(
            f"{collection} record {entity_id} not found",
            collection=collection,
            entity_id=entity_id,
        )
        self.collection = collection
        self.entity_id = entity_id


class InvalidState(LMSError):
    kind = ErrorKind.INVALID_STATE


class DuplicateRequest(LMSError):
    """Uniqueness invariant violated. ``existing`` is the record that won."""

    kind = ErrorKind.DUPLICATE_REQUEST

    def __init__(self, message: str, existing: Any = None, **details: Any):
        if existing is not None:
            details["existing"] = existing
        super().__init__(message, **details)
        self.existing = existing


class ValidationError(LMSError):
    kind = ErrorKind.VALIDATION_ERROR


class PreconditionFailed(LMSError):
    """A conditional write lost against a concurrent change."""

    kind = ErrorKind.PRECONDITION_FAILED


class StorageUnavailable(LMSError):
    kind = ErrorKind.STORAGE_UNAVAILABLE


# =============================================================================
# Named failures
# =============================================================================


class NotEnrolled(InvalidState):
    """Student holds no approved enrollment in the course."""


class NotCompleted(InvalidState):
    """Course has not been completed by the student."""


class CertificateRejected(InvalidState):
    """A rejected certificate blocks re-request (resubmission disabled)."""


class DuplicateEnrollment(DuplicateRequest):
    pass


class AlreadyCompleted(DuplicateRequest):
    """The student already holds a result for this assessment."""


class AlreadySubmitted(DuplicateRequest):
    """The attempt was submitted before."""


class DuplicatePending(DuplicateRequest):
    pass


class AlreadyVerified(DuplicateRequest):
    pass


class MissingReason(ValidationError):
    pass
