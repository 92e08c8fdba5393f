"""Enrollment entities and the profile a student submits with a request."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from coursework.catalog.models import Course


class EnrollmentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EnrollmentDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def resulting_status(self) -> EnrollmentStatus:
        if self is EnrollmentDecision.APPROVE:
            return EnrollmentStatus.APPROVED
        return EnrollmentStatus.REJECTED


class EnrollmentProfile(BaseModel):
    """Applicant details captured on the enrollment form."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    student_name: str = Field(..., min_length=1, alias="studentName")
    student_number: str = Field(..., min_length=1, alias="studentNumber")
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+$")
    phone: str | None = None
    address: str | None = None
    previous_education: str | None = Field(None, alias="previousEducation")
    motivation: str | None = None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass
class Enrollment:
    """A student's relationship to one course."""

    id: str
    student_id: str
    course_id: str
    status: EnrollmentStatus
    progress: int = 0
    completed: bool = False
    enrolled_at: datetime | None = None
    completed_at: datetime | None = None
    last_activity: datetime | None = None
    course_name: str = ""
    profile: dict[str, Any] = field(default_factory=dict)
    decided_by: str | None = None
    decided_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "courseId": self.course_id,
            "courseName": self.course_name,
            "status": self.status.value,
            "progress": self.progress,
            "completed": self.completed,
            "completedAt": self.completed_at,
            "enrolledAt": self.enrolled_at,
            "lastActivity": self.last_activity,
            "profile": dict(self.profile),
            "decidedBy": self.decided_by,
            "decidedAt": self.decided_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Enrollment:
        return cls(
            id=data["id"],
            student_id=data["studentId"],
            course_id=data["courseId"],
            status=EnrollmentStatus(data.get("status", EnrollmentStatus.PENDING.value)),
            progress=int(data.get("progress") or 0),
            completed=bool(data.get("completed", False)),
            enrolled_at=data.get("enrolledAt"),
            completed_at=data.get("completedAt"),
            last_activity=data.get("lastActivity"),
            course_name=data.get("courseName", ""),
            profile=dict(data.get("profile") or {}),
            decided_by=data.get("decidedBy"),
            decided_at=data.get("decidedAt"),
        )


@dataclass
class EnrolledCourse:
    """A catalog course joined with the student's approved enrollment."""

    course: Course
    enrollment: Enrollment

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.course.to_dict(),
            "enrollmentId": self.enrollment.id,
            "enrollmentProgress": self.enrollment.progress,
            "completed": self.enrollment.completed,
            "completedAt": self.enrollment.completed_at,
        }
