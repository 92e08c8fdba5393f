"""Certificate entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class CertificateStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not CertificateStatus.PENDING


@dataclass
class Certificate:
    """Attestation of course completion awaiting or past admin review."""

    id: str
    student_id: str
    course_id: str
    student_name: str
    student_email: str
    course_name: str
    status: CertificateStatus
    completed_at: datetime | None = None
    requested_at: datetime | None = None
    verified_by: str | None = None
    verified_at: datetime | None = None
    certificate_number: str | None = None
    rejection_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "courseId": self.course_id,
            "studentName": self.student_name,
            "studentEmail": self.student_email,
            "courseName": self.course_name,
            "status": self.status.value,
            "completedAt": self.completed_at,
            "requestedAt": self.requested_at,
            "verifiedBy": self.verified_by,
            "verifiedAt": self.verified_at,
            "certificateNumber": self.certificate_number,
            "rejectionReason": self.rejection_reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Certificate:
        return cls(
            id=data["id"],
            student_id=data["studentId"],
            course_id=data["courseId"],
            student_name=data.get("studentName", ""),
            student_email=data.get("studentEmail", ""),
            course_name=data.get("courseName", ""),
            status=CertificateStatus(data.get("status", CertificateStatus.PENDING.value)),
            completed_at=data.get("completedAt"),
            requested_at=data.get("requestedAt"),
            verified_by=data.get("verifiedBy"),
            verified_at=data.get("verifiedAt"),
            certificate_number=data.get("certificateNumber"),
            rejection_reason=data.get("rejectionReason"),
        )


@dataclass
class CertificateStats:
    total: int = 0
    pending: int = 0
    verified: int = 0
    rejected: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "verified": self.verified,
            "rejected": self.rejected,
        }


@dataclass
class CertificateDocument:
    """What a renderer (PDF, print view) needs for a verified certificate."""

    certificate_number: str
    student_name: str
    course_name: str
    completed_at: datetime | None
    verified_at: datetime | None
    verified_by: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "certificateNumber": self.certificate_number,
            "studentName": self.student_name,
            "courseName": self.course_name,
            "completedAt": self.completed_at,
            "verifiedAt": self.verified_at,
            "verifiedBy": self.verified_by,
        }
