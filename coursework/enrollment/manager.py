"""
Enrollment Manager.

Owns the enrollment lifecycle: request -> approve/reject -> progress ->
completion. Every transition is one conditional store write:

- request: create with unique key ``student:course`` (one active enrollment)
- decide: update where status == pending (rejection releases the key)
- progress: update where (status, progress) is what we read, so the
  completion flag and completedAt land in the same write as progress == 100
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from config import Settings, get_settings
from coursework.catalog.models import Course
from coursework.catalog.service import CourseCatalog
from coursework.core.auth import Principal, authorize, require_owner
from coursework.core.errors import (
    DuplicateEnrollment,
    DuplicateRequest,
    InvalidState,
    NotFound,
    PreconditionFailed,
    Unauthorized,
    ValidationError,
)
from coursework.core.validation import parse_draft
from coursework.db.store import COURSES, ENROLLMENTS, SERVER_TIMESTAMP, DocumentStore
from coursework.enrollment.models import (
    EnrolledCourse,
    Enrollment,
    EnrollmentDecision,
    EnrollmentProfile,
    EnrollmentStatus,
)


def enrollment_key(student_id: str, course_id: str) -> str:
    return f"{student_id}:{course_id}"


def student_id_of(student: Principal | str, operation: str) -> str:
    """Resolve a student argument, authorizing it when a Principal is given."""
    if isinstance(student, Principal):
        return authorize(student, operation).user_id
    if not student:
        raise ValidationError("student id is required")
    return student


class EnrollmentManager:
    """Enrollment lifecycle operations."""

    def __init__(
        self,
        store: DocumentStore,
        catalog: CourseCatalog,
        settings: Settings | None = None,
    ):
        self.store = store
        self.catalog = catalog
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def request_enrollment(
        self,
        student: Principal | str,
        course_id: str,
        profile: EnrollmentProfile | dict[str, Any],
    ) -> Enrollment:
        """
        Request a place on a course.

        Raises:
            NotFound: course missing or no longer active
            DuplicateEnrollment: a pending/approved enrollment already exists
                (the existing one is attached)
        """
        student_id = student_id_of(student, "request_enrollment")
        applicant = parse_draft(EnrollmentProfile, profile)
        course = self.catalog.get_course(course_id)
        if not course.is_active:
            raise NotFound(COURSES, course_id)

        data = {
            "studentId": student_id,
            "courseId": course_id,
            "courseName": course.title,
            "status": EnrollmentStatus.PENDING.value,
            "progress": 0,
            "completed": False,
            "completedAt": None,
            "enrolledAt": SERVER_TIMESTAMP,
            "lastActivity": None,
            "profile": applicant.to_record(),
        }
        try:
            enrollment_id = self.store.create(
                ENROLLMENTS, data, unique_key=enrollment_key(student_id, course_id)
            )
        except DuplicateRequest as e:
            existing = Enrollment.from_dict(e.existing) if e.existing else None
            raise DuplicateEnrollment(
                f"student {student_id} already has an active enrollment for course {course_id}",
                existing=existing,
            ) from None

        logger.info("Enrollment {} requested by {} for course {}", enrollment_id, student_id, course_id)
        return self.get_enrollment(enrollment_id)

    def decide_enrollment(
        self,
        actor: Principal,
        enrollment_id: str,
        decision: EnrollmentDecision | str,
    ) -> Enrollment:
        """Approve or reject a pending enrollment (admin/teacher)."""
        authorize(actor, "decide_enrollment")
        try:
            decision = EnrollmentDecision(decision)
        except ValueError:
            raise ValidationError(f"unknown decision {decision!r}") from None

        current = self.get_enrollment(enrollment_id)
        if current.status is not EnrollmentStatus.PENDING:
            raise InvalidState(
                f"enrollment {enrollment_id} is already {current.status.value}",
                status=current.status,
            )

        target = decision.resulting_status
        try:
            record = self.store.update(
                ENROLLMENTS,
                enrollment_id,
                {"status": target.value, "decidedBy": actor.user_id, "decidedAt": SERVER_TIMESTAMP},
                precondition={"status": EnrollmentStatus.PENDING.value},
                release_key=target is EnrollmentStatus.REJECTED,
            )
        except PreconditionFailed:
            logger.warning("Enrollment {} was decided concurrently", enrollment_id)
            raise InvalidState(f"enrollment {enrollment_id} was decided concurrently") from None

        logger.info("Enrollment {} {} by {}", enrollment_id, target.value, actor.user_id)
        return Enrollment.from_dict(record)

    def advance_progress(
        self,
        student: Principal | str,
        enrollment_id: str,
        delta: int | None = None,
    ) -> Enrollment:
        """
        Add ``delta`` percentage points (default: settings.progress_step).

        Progress is capped at 100; reaching 100 sets completed/completedAt in
        the same write. A write that loses a race is retried on a fresh read.
        """
        student_id = student_id_of(student, "advance_progress")
        delta = self.settings.progress_step if delta is None else delta
        if isinstance(delta, bool) or not isinstance(delta, int) or delta <= 0:
            raise ValidationError("progress delta must be a positive integer", delta=delta)

        for attempt in range(self.settings.progress_update_attempts):
            enrollment = self.get_enrollment(enrollment_id)
            require_owner(student_id, enrollment.student_id, "enrollment")
            if enrollment.status is not EnrollmentStatus.APPROVED:
                raise InvalidState(
                    f"enrollment {enrollment_id} is {enrollment.status.value}, not approved",
                    status=enrollment.status,
                )
            if enrollment.completed:
                return enrollment

            new_progress = min(100, enrollment.progress + delta)
            patch: dict[str, Any] = {"progress": new_progress, "lastActivity": SERVER_TIMESTAMP}
            if new_progress == 100:
                patch["completed"] = True
                patch["completedAt"] = SERVER_TIMESTAMP
            try:
                record = self.store.update(
                    ENROLLMENTS,
                    enrollment_id,
                    patch,
                    precondition={
                        "status": EnrollmentStatus.APPROVED.value,
                        "progress": enrollment.progress,
                    },
                )
            except PreconditionFailed:
                logger.warning(
                    "Progress write on {} lost a race (attempt {}/{})",
                    enrollment_id,
                    attempt + 1,
                    self.settings.progress_update_attempts,
                )
                continue

            updated = Enrollment.from_dict(record)
            if updated.completed:
                logger.info("Enrollment {} completed by {}", enrollment_id, student_id)
            else:
                logger.debug("Enrollment {} progress {} -> {}", enrollment_id, enrollment.progress, new_progress)
            return updated

        raise PreconditionFailed(
            f"progress on enrollment {enrollment_id} kept changing concurrently",
            attempts=self.settings.progress_update_attempts,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_enrollment(self, enrollment_id: str) -> Enrollment:
        return Enrollment.from_dict(self.store.get(ENROLLMENTS, enrollment_id))

    def enrollments_for(self, student_id: str, course_id: str | None = None) -> list[Enrollment]:
        filters: dict[str, Any] = {"studentId": student_id}
        if course_id is not None:
            filters["courseId"] = course_id
        records = self.store.list(ENROLLMENTS, filters, order_by="enrolledAt", descending=True)
        return [Enrollment.from_dict(r) for r in records]

    def approved_enrollment(self, student_id: str, course_id: str) -> Enrollment | None:
        for enrollment in self.enrollments_for(student_id, course_id):
            if enrollment.status is EnrollmentStatus.APPROVED:
                return enrollment
        return None

    def list_enrolled_courses(self, student_id: str) -> list[EnrolledCourse]:
        """Courses with an approved enrollment; removed courses are skipped."""
        enrolled = []
        for enrollment in self.enrollments_for(student_id):
            if enrollment.status is not EnrollmentStatus.APPROVED:
                continue
            course = self.catalog.find_course(enrollment.course_id)
            if course is not None:
                enrolled.append(EnrolledCourse(course=course, enrollment=enrollment))
        return enrolled

    def list_available_courses(self, student_id: str) -> list[Course]:
        """
        Active catalog courses the student has no enrollment record for.

        Pending and rejected enrollments hide a course too, so a student
        cannot file a duplicate request from the catalog view.
        """
        seen = {e.course_id for e in self.enrollments_for(student_id)}
        return [c for c in self.catalog.list_courses(active_only=True) if c.id not in seen]

    def list_enrollments(
        self,
        actor: Principal,
        student_id: str | None = None,
        status: EnrollmentStatus | str | None = None,
    ) -> list[Enrollment]:
        """Staff see every enrollment; students only their own."""
        filters: dict[str, Any] = {}
        if actor.is_staff:
            if student_id is not None:
                filters["studentId"] = student_id
        else:
            if student_id is not None and student_id != actor.user_id:
                raise Unauthorized("students may only list their own enrollments")
            filters["studentId"] = actor.user_id
        if status is not None:
            try:
                filters["status"] = EnrollmentStatus(status).value
            except ValueError:
                raise ValidationError(f"unknown enrollment status {status!r}") from None
        records = self.store.list(ENROLLMENTS, filters, order_by="enrolledAt", descending=True)
        return [Enrollment.from_dict(r) for r in records]

    def list_pending_enrollments(self, actor: Principal) -> list[Enrollment]:
        """Review queue, oldest request first."""
        authorize(actor, "list_all_enrollments")
        records = self.store.list(
            ENROLLMENTS, {"status": EnrollmentStatus.PENDING.value}, order_by="enrolledAt"
        )
        return [Enrollment.from_dict(r) for r in records]
