"""
Integration Tests for the learning lifecycle on the SQL store.

Walks one student through the whole path against SQLite:
1. Staff publish a course and an assessment
2. The student enrolls, is approved and progresses to completion
3. The student takes the assessment
4. The student requests a certificate and an admin verifies it
5. Analytics reflect all of it
6. Settings choose the store behind the engine
"""

import pytest

from coursework.certificates.models import CertificateStatus
from coursework.core.errors import AlreadyCompleted, DuplicateEnrollment, DuplicatePending
from coursework.db.database import create_db_engine, init_db
from coursework.db.sql_store import SQLDocumentStore
from coursework.db.store import USERS
from coursework.engine import build_engine
from coursework.enrollment.models import EnrollmentStatus

pytestmark = pytest.mark.integration


@pytest.fixture
def sql_engine(settings):
    db = create_db_engine("sqlite:///:memory:")
    init_db(db)
    store = SQLDocumentStore(db, retry_backoff_seconds=0.0)
    return build_engine(settings, store)


class TestTheCatalog:
    """Test 1: staff build a course with an assessment."""

    def test_course_and_assessment_round_trip(self, sql_engine, teacher, course_draft, assessment_draft):
        course = sql_engine.catalog.create_course(teacher, course_draft)
        assessment = sql_engine.assessments.create_assessment(
            teacher, {**assessment_draft, "courseId": course.id}
        )

        assert sql_engine.catalog.get_course(course.id).materials[1].title == "Subnetting walkthrough"
        assert sql_engine.assessments.get_assessment(assessment.id).total_points == 5


class TestTheFullPath:
    """Test 2-5: enrollment through verified certificate and analytics."""

    def test_student_lifecycle(
        self, sql_engine, admin, teacher, student, course_draft, assessment_draft, profile
    ):
        engine = sql_engine
        engine.store.put(USERS, student.user_id, {"role": "student", "displayName": "Ada Lovelace"})

        course = engine.catalog.create_course(teacher, course_draft)
        assessment = engine.assessments.create_assessment(
            teacher, {**assessment_draft, "courseId": course.id}
        )

        # Enrollment
        enrollment = engine.enrollments.request_enrollment(student, course.id, profile)
        with pytest.raises(DuplicateEnrollment):
            engine.enrollments.request_enrollment(student, course.id, profile)
        enrollment = engine.enrollments.decide_enrollment(teacher, enrollment.id, "approve")
        assert enrollment.status is EnrollmentStatus.APPROVED

        # Assessment
        attempt = engine.assessments.start_attempt(student, assessment.id)
        engine.assessments.record_answer(attempt, 0, 1)
        engine.assessments.record_answer(attempt, 1, 2)
        result = engine.assessments.submit_attempt(attempt)
        assert (result.score, result.total_points) == (2, 5)
        with pytest.raises(AlreadyCompleted):
            engine.assessments.start_attempt(student, assessment.id)

        # Progress
        while not enrollment.completed:
            enrollment = engine.enrollments.advance_progress(student, enrollment.id, 25)
        assert enrollment.progress == 100

        # Certificate
        certificate = engine.certificates.request_certificate(student, course.id)
        with pytest.raises(DuplicatePending):
            engine.certificates.request_certificate(student, course.id)
        verified = engine.certificates.verify_certificate(admin, certificate.id)
        assert verified.status is CertificateStatus.VERIFIED
        assert engine.certificates.render_data(certificate.id).student_name == "Ada Lovelace"

        # Analytics
        report = engine.analytics.report(admin)
        assert report.total_students == 1
        assert report.completion_rate == 100.0
        assert report.course_performance[0].average_score == 40.0
        assert report.recent_activity[0].result_id == result.id

    def test_rejected_certificate_can_be_requested_again(
        self, sql_engine, admin, teacher, student, course_draft, profile
    ):
        engine = sql_engine
        course = engine.catalog.create_course(teacher, course_draft)
        enrollment = engine.enrollments.request_enrollment(student, course.id, profile)
        engine.enrollments.decide_enrollment(teacher, enrollment.id, "approve")
        engine.enrollments.advance_progress(student, enrollment.id, 100)

        first = engine.certificates.request_certificate(student, course.id)
        engine.certificates.reject_certificate(admin, first.id, "Project missing")
        second = engine.certificates.request_certificate(student, course.id)

        assert second.id != first.id
        assert engine.certificates.certificate_stats(admin).to_dict() == {
            "total": 2,
            "pending": 1,
            "verified": 0,
            "rejected": 1,
        }


class TestStoreSelection:
    """Test 6: settings pick the store behind the engine."""

    def test_sql_backend_from_settings(self, settings):
        configured = settings.model_copy(update={"store_backend": "sql", "storage_retry_attempts": 2})

        engine = build_engine(configured)

        assert isinstance(engine.store, SQLDocumentStore)
        assert engine.store.retry_attempts == 2
        assert engine.catalog.list_courses() == []

    def test_memory_backend_from_settings(self, settings):
        assert type(build_engine(settings).store).__name__ == "InMemoryStore"
