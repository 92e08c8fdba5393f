"""
Document store boundary.

The engine is written against this protocol only. Records are plain dicts
with camelCase keys; the store owns ``id`` and replaces SERVER_TIMESTAMP
placeholders with its own clock.

Atomicity guarantees an implementation must give:
- ``create`` with a ``unique_key`` either inserts or raises
  DuplicateRequest carrying the live record holding that key.
- ``update`` with a ``precondition`` applies only if every listed field
  currently equals the expected value, else PreconditionFailed.
- ``release_key`` frees the record's unique key in the same write.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

COURSES = "courses"
ASSESSMENTS = "assessments"
ENROLLMENTS = "enrollments"
ASSESSMENT_RESULTS = "assessmentResults"
CERTIFICATES = "certificates"
CERTIFICATE_NUMBERS = "certificateNumbers"
USERS = "users"

COLLECTIONS = (
    COURSES,
    ASSESSMENTS,
    ENROLLMENTS,
    ASSESSMENT_RESULTS,
    CERTIFICATES,
    CERTIFICATE_NUMBERS,
    USERS,
)


class _ServerTimestamp:
    """Placeholder resolved by the store at write time."""

    _instance: _ServerTimestamp | None = None

    def __new__(cls) -> _ServerTimestamp:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def utcnow() -> datetime:
    return datetime.now(UTC)


def resolve_timestamps(data: Mapping[str, Any], now: datetime) -> dict[str, Any]:
    """Copy ``data`` with SERVER_TIMESTAMP placeholders replaced by ``now``."""
    return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in data.items()}


def matches(record: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
    """Equality filter used by list() and preconditions."""
    if not filters:
        return True
    return all(record.get(field) == expected for field, expected in filters.items())


def sort_records(
    records: list[dict[str, Any]],
    order_by: str | None,
    descending: bool,
    limit: int | None,
) -> list[dict[str, Any]]:
    """Order and truncate list() output. Records missing the key sort last."""
    if order_by:
        present = [r for r in records if r.get(order_by) is not None]
        missing = [r for r in records if r.get(order_by) is None]
        present.sort(key=lambda r: r[order_by], reverse=descending)
        records = present + missing
    if limit is not None:
        records = records[:limit]
    return records


class DocumentStore(Protocol):
    """Persistence operations the engine relies on."""

    def get(self, collection: str, entity_id: str) -> dict[str, Any]:
        """Return the record or raise NotFound."""
        ...

    def list(
        self,
        collection: str,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return matching records (possibly empty)."""
        ...

    def create(
        self,
        collection: str,
        data: Mapping[str, Any],
        unique_key: str | None = None,
    ) -> str:
        """Insert a record and return its new id."""
        ...

    def update(
        self,
        collection: str,
        entity_id: str,
        patch: Mapping[str, Any],
        precondition: Mapping[str, Any] | None = None,
        release_key: bool = False,
    ) -> dict[str, Any]:
        """Apply ``patch`` atomically and return the updated record."""
        ...

    def delete(self, collection: str, entity_id: str) -> None:
        """Remove a record or raise NotFound."""
        ...
