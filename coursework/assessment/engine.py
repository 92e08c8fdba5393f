"""
Assessment Engine.

Authoring of timed multiple-choice assessments, the attempt lifecycle and
scoring. A student gets exactly one stored result per assessment: the
result is created with the unique key ``student:assessment`` so a manual
submit racing the timeout submit (or a second browser tab) can only ever
persist once.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from loguru import logger

from config import Settings, get_settings
from coursework.assessment.attempt import Attempt, AttemptCountdown, AttemptState, validate_answer
from coursework.assessment.models import (
    Assessment,
    AssessmentDraft,
    AssessmentResult,
    CompletedAssessment,
    UNKNOWN_ASSESSMENT,
    UNKNOWN_COURSE,
)
from coursework.catalog.service import CourseCatalog
from coursework.core.auth import Principal, authorize
from coursework.core.errors import (
    AlreadyCompleted,
    AlreadySubmitted,
    DuplicateRequest,
    InvalidState,
    NotEnrolled,
    NotFound,
)
from coursework.core.validation import parse_draft
from coursework.db.store import (
    ASSESSMENT_RESULTS,
    ASSESSMENTS,
    SERVER_TIMESTAMP,
    DocumentStore,
    utcnow,
)
from coursework.enrollment.manager import EnrollmentManager, student_id_of


def result_key(student_id: str, assessment_id: str) -> str:
    return f"{student_id}:{assessment_id}"


def score_answers(assessment: Assessment, answers: Mapping[int, int]) -> tuple[int, int]:
    """
    Score a set of answers.

    Returns (score, total_points). A question earns its points only when
    the recorded option equals the correct option; unanswered questions
    earn nothing.
    """
    score = 0
    for index, question in enumerate(assessment.questions):
        if answers.get(index) == question.correct_option_index:
            score += question.points
    return score, assessment.total_points


class AssessmentEngine:
    """Assessment authoring, attempts and results."""

    def __init__(
        self,
        store: DocumentStore,
        catalog: CourseCatalog,
        enrollments: EnrollmentManager,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.catalog = catalog
        self.enrollments = enrollments
        self.settings = settings or get_settings()
        self.clock = clock

    # ------------------------------------------------------------------
    # Authoring
    # ------------------------------------------------------------------

    def create_assessment(self, actor: Principal, draft: AssessmentDraft | dict[str, Any]) -> Assessment:
        authorize(actor, "create_assessment")
        parsed = parse_draft(AssessmentDraft, draft)
        course = self.catalog.get_course(parsed.course_id)

        data = {
            "courseId": course.id,
            "title": parsed.title,
            "description": parsed.description,
            "questions": [q.model_dump(by_alias=True) for q in parsed.questions],
            "timeLimitMinutes": parsed.time_limit_minutes or self.settings.default_time_limit_minutes,
            "createdBy": actor.user_id,
            "createdAt": SERVER_TIMESTAMP,
        }
        assessment_id = self.store.create(ASSESSMENTS, data)
        logger.info(
            "Assessment {} '{}' ({} questions) created for course {}",
            assessment_id,
            parsed.title,
            len(parsed.questions),
            course.id,
        )
        return self.get_assessment(assessment_id)

    def get_assessment(self, assessment_id: str) -> Assessment:
        return Assessment.from_dict(self.store.get(ASSESSMENTS, assessment_id))

    def list_assessments(self, course_id: str | None = None) -> list[Assessment]:
        filters = {"courseId": course_id} if course_id else None
        records = self.store.list(ASSESSMENTS, filters, order_by="createdAt", descending=True)
        return [Assessment.from_dict(r) for r in records]

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def find_result(self, student_id: str, assessment_id: str) -> AssessmentResult | None:
        records = self.store.list(
            ASSESSMENT_RESULTS, {"studentId": student_id, "assessmentId": assessment_id}, limit=1
        )
        return AssessmentResult.from_dict(records[0]) if records else None

    def results_for(self, student_id: str) -> list[AssessmentResult]:
        records = self.store.list(
            ASSESSMENT_RESULTS, {"studentId": student_id}, order_by="completedAt", descending=True
        )
        return [AssessmentResult.from_dict(r) for r in records]

    def list_available_assessments(self, student_id: str) -> list[Assessment]:
        """Assessments of approved courses the student has not completed yet."""
        done = {r.assessment_id for r in self.results_for(student_id)}
        available = []
        for enrolled in self.enrollments.list_enrolled_courses(student_id):
            for assessment in self.list_assessments(enrolled.course.id):
                if assessment.id not in done:
                    available.append(assessment)
        return available

    def list_results(self, student_id: str) -> list[CompletedAssessment]:
        """Completed assessments, newest first, joined with display titles."""
        completed = []
        for result in self.results_for(student_id):
            assessment = self._find_assessment(result.assessment_id)
            course = self.catalog.find_course(result.course_id)
            completed.append(
                CompletedAssessment(
                    result=result,
                    assessment_title=assessment.title if assessment else UNKNOWN_ASSESSMENT,
                    course_title=course.title if course else UNKNOWN_COURSE,
                )
            )
        return completed

    def _find_assessment(self, assessment_id: str) -> Assessment | None:
        try:
            return self.get_assessment(assessment_id)
        except NotFound:
            return None

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def start_attempt(self, student: Principal | str, assessment_id: str) -> Attempt:
        """
        Open an attempt for a student.

        Raises:
            NotFound: assessment missing
            NotEnrolled: no approved enrollment in the assessment's course
            AlreadyCompleted: a result already exists (attached)
        """
        student_id = student_id_of(student, "start_attempt")
        assessment = self.get_assessment(assessment_id)
        if self.enrollments.approved_enrollment(student_id, assessment.course_id) is None:
            raise NotEnrolled(
                f"student {student_id} is not enrolled in course {assessment.course_id}",
                course_id=assessment.course_id,
            )
        existing = self.find_result(student_id, assessment_id)
        if existing is not None:
            raise AlreadyCompleted(
                f"student {student_id} already completed assessment {assessment_id}",
                existing=existing,
            )

        now = self.clock()
        attempt = Attempt(
            attempt_id=uuid.uuid4().hex,
            student_id=student_id,
            assessment=assessment,
            started_at=now,
            deadline=now + assessment.time_limit_seconds,
            started_at_wall=utcnow(),
            state=AttemptState.IN_PROGRESS,
        )
        logger.info(
            "Attempt {} started by {} on assessment {} ({}s)",
            attempt.attempt_id,
            student_id,
            assessment_id,
            assessment.time_limit_seconds,
        )
        return attempt

    def record_answer(self, attempt: Attempt, question_index: int, option_index: int) -> None:
        attempt.record(question_index, option_index, now=self.clock())

    def seconds_remaining(self, attempt: Attempt) -> int:
        return attempt.seconds_remaining(self.clock())

    def submit_attempt(
        self,
        attempt: Attempt,
        answers: Mapping[Any, Any] | None = None,
        auto_submitted: bool = False,
    ) -> AssessmentResult:
        """
        Score and persist the attempt. Runs at most once per attempt.

        ``answers`` replaces the recorded answers when given. Once the
        deadline has passed only the recorded answers count and the result
        is stored as auto-submitted. The countdown is cancelled once the
        result is stored.

        Raises:
            AlreadySubmitted: this attempt or another one for the same
                student and assessment already stored a result (attached)
            ValidationError: an answer index is out of range
        """
        with attempt.lock:
            if attempt.state is AttemptState.SUBMITTED:
                raise AlreadySubmitted(
                    f"attempt {attempt.attempt_id} was already submitted", existing=attempt.result
                )
            if attempt.state is not AttemptState.IN_PROGRESS:
                raise InvalidState(f"attempt {attempt.attempt_id} has not started")

            remaining = attempt.seconds_remaining(self.clock())
            if remaining == 0 and not auto_submitted:
                logger.info(
                    "Attempt {} submitted after its deadline; keeping recorded answers",
                    attempt.attempt_id,
                )
                answers = None
                auto_submitted = True

            if answers is None:
                final = dict(attempt.answers)
            else:
                final = dict(validate_answer(attempt.assessment, q, o) for q, o in answers.items())

            assessment = attempt.assessment
            score, total = score_answers(assessment, final)
            time_spent = max(0, assessment.time_limit_seconds - remaining)
            data = {
                "studentId": attempt.student_id,
                "assessmentId": assessment.id,
                "courseId": assessment.course_id,
                "answers": {str(k): v for k, v in final.items()},
                "score": score,
                "totalPoints": total,
                "completedAt": SERVER_TIMESTAMP,
                "timeSpentSeconds": time_spent,
                "autoSubmitted": auto_submitted,
            }
            try:
                result_id = self.store.create(
                    ASSESSMENT_RESULTS, data, unique_key=result_key(attempt.student_id, assessment.id)
                )
            except DuplicateRequest as e:
                existing = AssessmentResult.from_dict(e.existing) if e.existing else None
                self._close(attempt, existing)
                logger.warning(
                    "Attempt {} lost: result for {} on {} already stored",
                    attempt.attempt_id,
                    attempt.student_id,
                    assessment.id,
                )
                raise AlreadySubmitted(
                    f"assessment {assessment.id} already has a result for {attempt.student_id}",
                    existing=existing,
                ) from None

            attempt.answers = final
            result = AssessmentResult.from_dict(self.store.get(ASSESSMENT_RESULTS, result_id))
            self._close(attempt, result)

        logger.info(
            "Attempt {} {}: {}/{} ({:.1f}%) in {}s",
            attempt.attempt_id,
            "auto-submitted" if auto_submitted else "submitted",
            score,
            total,
            result.percentage,
            time_spent,
        )
        return result

    def expire_attempt(self, attempt: Attempt) -> AssessmentResult | None:
        """
        Timeout path: submit whatever answers were recorded.

        Returns None when the attempt was already submitted, so a timer
        firing after a manual submit does nothing.
        """
        with attempt.lock:
            if attempt.state is not AttemptState.IN_PROGRESS:
                return None
            try:
                return self.submit_attempt(attempt, auto_submitted=True)
            except AlreadySubmitted:
                return None

    def start_countdown(
        self,
        attempt: Attempt,
        timer_factory: Callable[..., Any] | None = None,
        on_expired: Callable[[Attempt], Any] | None = None,
    ) -> AttemptCountdown:
        """
        Arm the timer that auto-submits the attempt at its deadline.

        ``on_expired`` runs on the timer thread after the timeout submit,
        whether or not that submit stored a result.
        """
        if attempt.countdown is not None:
            attempt.countdown.cancel()
        kwargs = {"timer_factory": timer_factory} if timer_factory is not None else {}

        def expire() -> None:
            try:
                self.expire_attempt(attempt)
            finally:
                if on_expired is not None:
                    on_expired(attempt)

        countdown = AttemptCountdown(self.seconds_remaining(attempt), expire, **kwargs)
        attempt.countdown = countdown
        return countdown.start()

    def cancel_attempt(self, attempt: Attempt) -> None:
        """Stop the countdown without submitting. Nothing is persisted."""
        if attempt.countdown is not None:
            attempt.countdown.cancel()
        logger.debug("Attempt {} cancelled in state {}", attempt.attempt_id, attempt.state.value)

    @staticmethod
    def _close(attempt: Attempt, result: AssessmentResult | None) -> None:
        attempt.state = AttemptState.SUBMITTED
        attempt.result = result
        if attempt.countdown is not None:
            attempt.countdown.cancel()
