"""Loads store snapshots and feeds them to the aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger

from config import Settings, get_settings
from coursework.analytics.aggregator import (
    ActivityEntry,
    CoursePerformance,
    StudentEngagement,
    completion_rate,
    course_performance,
    recent_activity,
    student_engagement,
)
from coursework.assessment.models import Assessment, AssessmentResult
from coursework.catalog.models import Course
from coursework.core.auth import Principal, Role, authorize
from coursework.db.store import (
    ASSESSMENT_RESULTS,
    ASSESSMENTS,
    COURSES,
    ENROLLMENTS,
    USERS,
    DocumentStore,
    utcnow,
)
from coursework.enrollment.models import Enrollment

# Enrollments listed on the staff dashboard
DASHBOARD_RECENT_ENROLLMENTS = 5


@dataclass
class AnalyticsReport:
    total_students: int
    total_courses: int
    total_enrollments: int
    completion_rate: float
    course_performance: list[CoursePerformance]
    student_engagement: list[StudentEngagement]
    recent_activity: list[ActivityEntry]
    generated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalStudents": self.total_students,
            "totalCourses": self.total_courses,
            "totalEnrollments": self.total_enrollments,
            "completionRate": self.completion_rate,
            "coursePerformance": [p.to_dict() for p in self.course_performance],
            "studentEngagement": [e.to_dict() for e in self.student_engagement],
            "recentActivity": [a.to_dict() for a in self.recent_activity],
            "generatedAt": self.generated_at,
        }


@dataclass
class DashboardSummary:
    """Landing-page counters; which fields are filled depends on the role."""

    role: Role
    total_courses: int
    total_enrollments: int
    total_students: int | None = None
    completed_courses: int | None = None
    enrollments: list[Enrollment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "role": self.role.value,
            "totalCourses": self.total_courses,
            "totalEnrollments": self.total_enrollments,
            "enrollments": [e.to_dict() for e in self.enrollments],
        }
        if self.total_students is not None:
            payload["totalStudents"] = self.total_students
        if self.completed_courses is not None:
            payload["completedCourses"] = self.completed_courses
        return payload


class AnalyticsService:
    """Read-only reporting. Snapshots may be slightly stale; nothing is written."""

    def __init__(self, store: DocumentStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    def report(self, actor: Principal) -> AnalyticsReport:
        authorize(actor, "view_analytics")
        courses = [Course.from_dict(r) for r in self.store.list(COURSES)]
        enrollments = [Enrollment.from_dict(r) for r in self.store.list(ENROLLMENTS)]
        results = [AssessmentResult.from_dict(r) for r in self.store.list(ASSESSMENT_RESULTS)]
        assessments = {r["id"]: Assessment.from_dict(r) for r in self.store.list(ASSESSMENTS)}
        users = {r["id"]: r for r in self.store.list(USERS)}

        report = AnalyticsReport(
            total_students=self._count_students(users),
            total_courses=len(courses),
            total_enrollments=len(enrollments),
            completion_rate=completion_rate(enrollments),
            course_performance=course_performance(courses, enrollments, results),
            student_engagement=student_engagement(enrollments, results, users),
            recent_activity=recent_activity(
                results,
                assessments,
                {c.id: c for c in courses},
                limit=self.settings.recent_activity_limit,
            ),
        )
        logger.debug(
            "Analytics report for {}: {} courses, {} enrollments, {:.1f}% complete",
            actor.user_id,
            report.total_courses,
            report.total_enrollments,
            report.completion_rate,
        )
        return report

    def dashboard_summary(self, actor: Principal) -> DashboardSummary:
        authorize(actor, "view_dashboard")
        total_courses = len(self.store.list(COURSES))
        if actor.is_staff:
            recent = self.store.list(
                ENROLLMENTS, order_by="enrolledAt", descending=True
            )
            return DashboardSummary(
                role=actor.role,
                total_courses=total_courses,
                total_enrollments=len(recent),
                total_students=self._count_students({r["id"]: r for r in self.store.list(USERS)}),
                enrollments=[Enrollment.from_dict(r) for r in recent[:DASHBOARD_RECENT_ENROLLMENTS]],
            )

        own = [
            Enrollment.from_dict(r)
            for r in self.store.list(
                ENROLLMENTS, {"studentId": actor.user_id}, order_by="enrolledAt", descending=True
            )
        ]
        return DashboardSummary(
            role=actor.role,
            total_courses=total_courses,
            total_enrollments=len(own),
            completed_courses=sum(1 for e in own if e.completed),
            enrollments=own,
        )

    @staticmethod
    def _count_students(users: dict[str, dict[str, Any]]) -> int:
        return sum(1 for u in users.values() if u.get("role") == Role.STUDENT.value)
