"""Enrollment lifecycle: request, decision, progress, completion."""

from .manager import EnrollmentManager
from .models import (
    EnrolledCourse,
    Enrollment,
    EnrollmentDecision,
    EnrollmentProfile,
    EnrollmentStatus,
)

__all__ = [
    "EnrolledCourse",
    "Enrollment",
    "EnrollmentDecision",
    "EnrollmentManager",
    "EnrollmentProfile",
    "EnrollmentStatus",
]
