"""Read-only rollups over courses, enrollments and results."""

from .aggregator import (
    ActivityEntry,
    CoursePerformance,
    StudentEngagement,
    completion_rate,
    course_performance,
    recent_activity,
    student_engagement,
)
from .service import AnalyticsReport, AnalyticsService, DashboardSummary

__all__ = [
    "ActivityEntry",
    "AnalyticsReport",
    "AnalyticsService",
    "CoursePerformance",
    "DashboardSummary",
    "StudentEngagement",
    "completion_rate",
    "course_performance",
    "recent_activity",
    "student_engagement",
]
