"""
Analytics Aggregator.

Pure functions over entity snapshots; nothing here touches the store.
Dangling references (a result whose assessment or course was removed, a
student with no users record) get a placeholder label instead of failing
the aggregation.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger

from coursework.assessment.models import (
    UNKNOWN_ASSESSMENT,
    UNKNOWN_COURSE,
    Assessment,
    AssessmentResult,
)
from coursework.catalog.models import Course
from coursework.enrollment.models import Enrollment

UNKNOWN_STUDENT = "Unknown Student"


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 1) if values else 0.0


@dataclass
class CoursePerformance:
    course_id: str
    title: str
    enrollments: int
    average_score: float
    average_progress: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "courseId": self.course_id,
            "title": self.title,
            "enrollments": self.enrollments,
            "averageScore": self.average_score,
            "averageProgress": self.average_progress,
        }


@dataclass
class StudentEngagement:
    student_id: str
    student_name: str
    courses: int = 0
    average_progress: float = 0.0
    assessments: int = 0
    average_score: float = 0.0
    last_activity: datetime | None = None
    progress_samples: list[float] = field(default_factory=list, repr=False)
    score_samples: list[float] = field(default_factory=list, repr=False)

    def touch(self, when: datetime | None) -> None:
        if when is not None and (self.last_activity is None or when > self.last_activity):
            self.last_activity = when

    def to_dict(self) -> dict[str, Any]:
        return {
            "studentId": self.student_id,
            "studentName": self.student_name,
            "courses": self.courses,
            "averageProgress": self.average_progress,
            "assessments": self.assessments,
            "averageScore": self.average_score,
            "lastActivity": self.last_activity,
        }


@dataclass
class ActivityEntry:
    result_id: str
    student_id: str
    assessment_title: str
    course_title: str
    percentage: float
    completed_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "resultId": self.result_id,
            "studentId": self.student_id,
            "assessmentTitle": self.assessment_title,
            "courseTitle": self.course_title,
            "percentage": self.percentage,
            "completedAt": self.completed_at,
        }


def completion_rate(enrollments: Iterable[Enrollment]) -> float:
    """Percentage of enrollments at 100% progress; 0.0 when there are none."""
    enrollments = list(enrollments)
    if not enrollments:
        return 0.0
    completed = sum(1 for e in enrollments if e.progress >= 100)
    return 100.0 * completed / len(enrollments)


def course_performance(
    courses: Iterable[Course],
    enrollments: Iterable[Enrollment],
    results: Iterable[AssessmentResult],
) -> list[CoursePerformance]:
    """Per-course enrollment count, mean score and mean progress, busiest first."""
    progress_by_course: dict[str, list[float]] = {}
    for enrollment in enrollments:
        progress_by_course.setdefault(enrollment.course_id, []).append(enrollment.progress)
    scores_by_course: dict[str, list[float]] = {}
    for result in results:
        scores_by_course.setdefault(result.course_id, []).append(result.percentage)

    performance = [
        CoursePerformance(
            course_id=course.id,
            title=course.title,
            enrollments=len(progress_by_course.get(course.id, [])),
            average_score=_mean(scores_by_course.get(course.id, [])),
            average_progress=_mean(progress_by_course.get(course.id, [])),
        )
        for course in courses
    ]
    performance.sort(key=lambda p: p.enrollments, reverse=True)
    return performance


def student_name(student_id: str, users: Mapping[str, Mapping[str, Any]], enrollment: Enrollment | None) -> str:
    """Display name: users record, then the enrollment profile, then a placeholder."""
    user = users.get(student_id) or {}
    profile = enrollment.profile if enrollment is not None else {}
    name = (
        user.get("name")
        or user.get("displayName")
        or user.get("email")
        or profile.get("studentName")
    )
    if not name:
        logger.warning("No display name for student {}, using placeholder", student_id)
        return UNKNOWN_STUDENT
    return name


def student_engagement(
    enrollments: Iterable[Enrollment],
    results: Iterable[AssessmentResult],
    users: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[StudentEngagement]:
    """
    Per-student rollup, most progressed first.

    Only students with at least one enrollment are listed; their results
    count towards assessments and score.
    """
    users = users or {}
    by_student: dict[str, StudentEngagement] = {}
    for enrollment in enrollments:
        entry = by_student.get(enrollment.student_id)
        if entry is None:
            entry = StudentEngagement(
                student_id=enrollment.student_id,
                student_name=student_name(enrollment.student_id, users, enrollment),
            )
            by_student[enrollment.student_id] = entry
        entry.courses += 1
        entry.progress_samples.append(enrollment.progress)
        entry.touch(enrollment.enrolled_at)
        entry.touch(enrollment.last_activity)
        entry.touch(enrollment.completed_at)

    for result in results:
        entry = by_student.get(result.student_id)
        if entry is None:
            continue
        entry.assessments += 1
        entry.score_samples.append(result.percentage)
        entry.touch(result.completed_at)

    engagement = list(by_student.values())
    for entry in engagement:
        entry.average_progress = _mean(entry.progress_samples)
        entry.average_score = _mean(entry.score_samples)
    engagement.sort(key=lambda e: e.average_progress, reverse=True)
    return engagement


def recent_activity(
    results: Iterable[AssessmentResult],
    assessments: Mapping[str, Assessment],
    courses: Mapping[str, Course],
    limit: int = 5,
) -> list[ActivityEntry]:
    """The ``limit`` most recently completed results with display titles."""
    ordered = sorted(
        (r for r in results if r.completed_at is not None),
        key=lambda r: r.completed_at,
        reverse=True,
    )[:limit]

    activity = []
    for result in ordered:
        assessment = assessments.get(result.assessment_id)
        course = courses.get(result.course_id)
        if assessment is None or course is None:
            logger.warning(
                "Result {} references missing assessment {} or course {}",
                result.id,
                result.assessment_id,
                result.course_id,
            )
        activity.append(
            ActivityEntry(
                result_id=result.id,
                student_id=result.student_id,
                assessment_title=assessment.title if assessment else UNKNOWN_ASSESSMENT,
                course_title=course.title if course else UNKNOWN_COURSE,
                percentage=result.percentage,
                completed_at=result.completed_at,
            )
        )
    return activity
