"""
Wiring of the coursework components over one document store.

    engine = build_engine()
    course = engine.catalog.create_course(teacher, {...})
    engine.enrollments.request_enrollment(student, course.id, profile)
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from config import Settings, get_settings
from coursework.analytics.service import AnalyticsService
from coursework.assessment.engine import AssessmentEngine
from coursework.catalog.service import CourseCatalog
from coursework.certificates.workflow import CertificateWorkflow
from coursework.db.database import create_db_engine, init_db
from coursework.db.memory import InMemoryStore
from coursework.db.sql_store import SQLDocumentStore
from coursework.db.store import DocumentStore
from coursework.enrollment.manager import EnrollmentManager


@dataclass
class LearningEngine:
    store: DocumentStore
    catalog: CourseCatalog
    enrollments: EnrollmentManager
    assessments: AssessmentEngine
    certificates: CertificateWorkflow
    analytics: AnalyticsService
    settings: Settings


def create_store(settings: Settings) -> DocumentStore:
    """Store for ``settings.store_backend``; SQL tables are created if missing."""
    if settings.store_backend == "memory":
        logger.info("Using in-memory document store")
        return InMemoryStore()

    engine = create_db_engine(settings.database_url, echo=settings.log_level == "DEBUG")
    init_db(engine)
    logger.info("Using SQL document store at {}", engine.url.render_as_string(hide_password=True))
    retry = settings.get_retry_config()
    return SQLDocumentStore(
        engine,
        retry_attempts=int(retry["attempts"]),
        retry_backoff_seconds=retry["backoff_seconds"],
    )


def build_engine(settings: Settings | None = None, store: DocumentStore | None = None) -> LearningEngine:
    settings = settings or get_settings()
    store = store if store is not None else create_store(settings)
    catalog = CourseCatalog(store)
    enrollments = EnrollmentManager(store, catalog, settings)
    return LearningEngine(
        store=store,
        catalog=catalog,
        enrollments=enrollments,
        assessments=AssessmentEngine(store, catalog, enrollments, settings),
        certificates=CertificateWorkflow(store, catalog, enrollments, settings),
        analytics=AnalyticsService(store, settings),
        settings=settings,
    )
