"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Unit tests run against the in-memory store; integration tests build their
own SQLite-backed engine.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from coursework.core.auth import Principal, Role  # noqa: E402
from coursework.db.memory import InMemoryStore  # noqa: E402
from coursework.db.store import USERS  # noqa: E402
from coursework.engine import build_engine  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite, API)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Settings independent of the developer's environment."""
    return Settings(
        _env_file=None,
        store_backend="memory",
        database_url="sqlite:///:memory:",
        storage_retry_backoff_seconds=0.0,
        log_level="WARNING",
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def engine(settings, store):
    return build_engine(settings, store)


# ========================================
# Principals
# ========================================


@pytest.fixture
def admin():
    return Principal("admin-1", Role.ADMIN)


@pytest.fixture
def teacher():
    return Principal("teacher-1", Role.TEACHER)


@pytest.fixture
def student():
    return Principal("student-1", Role.STUDENT)


@pytest.fixture
def other_student():
    return Principal("student-2", Role.STUDENT)


# ========================================
# Sample data
# ========================================


@pytest.fixture
def course_draft():
    return {
        "title": "Networking Fundamentals",
        "description": "OSI model, addressing and routing basics",
        "category": "networking",
        "difficulty": "beginner",
        "durationHours": 12,
        "materials": [
            {"title": "Intro slides", "type": "presentation", "url": "https://example.org/intro.pdf"},
            {"title": "Subnetting walkthrough", "type": "video", "url": "https://example.org/subnet"},
        ],
    }


@pytest.fixture
def profile():
    return {
        "studentName": "Ada Lovelace",
        "studentNumber": "S-1001",
        "email": "ada@example.org",
        "motivation": "Career change",
    }


@pytest.fixture
def course(engine, teacher, course_draft):
    return engine.catalog.create_course(teacher, course_draft)


@pytest.fixture
def approved_enrollment(engine, teacher, student, course, profile):
    enrollment = engine.enrollments.request_enrollment(student, course.id, profile)
    return engine.enrollments.decide_enrollment(teacher, enrollment.id, "approve")


@pytest.fixture
def completed_enrollment(engine, student, approved_enrollment):
    enrollment = approved_enrollment
    while not enrollment.completed:
        enrollment = engine.enrollments.advance_progress(student, enrollment.id)
    return enrollment


@pytest.fixture
def assessment_draft(course):
    """Two questions: (correct=1, points=2) and (correct=0, points=3)."""
    return {
        "courseId": course.id,
        "title": "Layers quiz",
        "description": "OSI layers",
        "timeLimitMinutes": 10,
        "questions": [
            {
                "questionText": "Which layer routes packets?",
                "options": ["Data link", "Network", "Transport", "Session"],
                "correctOptionIndex": 1,
                "points": 2,
            },
            {
                "questionText": "Which layer carries bits?",
                "options": ["Physical", "Network", "Transport", "Application"],
                "correctOptionIndex": 0,
                "points": 3,
            },
        ],
    }


@pytest.fixture
def assessment(engine, teacher, assessment_draft):
    return engine.assessments.create_assessment(teacher, assessment_draft)


@pytest.fixture
def seed_user(store):
    """Insert a users record (owned by the identity context in production)."""

    def _seed(user_id, role="student", **fields):
        store.put(USERS, user_id, {"role": role, **fields})

    return _seed
