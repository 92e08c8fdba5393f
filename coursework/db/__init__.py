"""Persistence boundary and its two implementations."""

from .memory import InMemoryStore
from .sql_store import SQLDocumentStore
from .store import (
    ASSESSMENT_RESULTS,
    ASSESSMENTS,
    CERTIFICATES,
    COURSES,
    ENROLLMENTS,
    SERVER_TIMESTAMP,
    USERS,
    DocumentStore,
)

__all__ = [
    "ASSESSMENT_RESULTS",
    "ASSESSMENTS",
    "CERTIFICATES",
    "COURSES",
    "ENROLLMENTS",
    "SERVER_TIMESTAMP",
    "USERS",
    "DocumentStore",
    "InMemoryStore",
    "SQLDocumentStore",
]
