"""
SQLAlchemy-backed document store.

Documents are JSON bodies in the shared ``documents`` table. Atomicity:
- unique keys are enforced by the (collection, unique_key) constraint, so
  two racing creates produce one row and one IntegrityError;
- updates are compare-and-swap on ``version``: read, check the
  precondition, then ``UPDATE ... WHERE version = :seen``. A zero rowcount
  means another writer landed first and the precondition is re-evaluated
  against the fresh row.

Transient database failures are retried here with exponential backoff and
surface as StorageUnavailable once the attempts are spent.
"""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy import Engine, delete, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from coursework.core.errors import (
    DuplicateRequest,
    NotFound,
    PreconditionFailed,
    StorageUnavailable,
)
from coursework.db.database import make_session_factory, session_scope
from coursework.db.models import DocumentRecord
from coursework.db.store import matches, resolve_timestamps, sort_records, utcnow

T = TypeVar("T")

# Compare-and-swap rounds before an update gives up as a lost race
CAS_ROUNDS = 5
_TS_TAG = "__datetime__"


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_TS_TAG: value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _decode(obj: dict[str, Any]) -> Any:
    if len(obj) == 1 and _TS_TAG in obj:
        return datetime.fromisoformat(obj[_TS_TAG])
    return obj


def dumps(data: Mapping[str, Any]) -> str:
    return json.dumps(dict(data), default=_encode)


def loads(raw: str) -> dict[str, Any]:
    return json.loads(raw, object_hook=_decode)


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, IntegrityError):
        return False
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


class SQLDocumentStore:
    """DocumentStore over any SQLAlchemy 2.0 engine."""

    def __init__(
        self,
        engine: Engine,
        clock: Callable[[], datetime] = utcnow,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
    ):
        self.engine = engine
        self._factory = make_session_factory(engine)
        self._clock = clock
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds

    # ------------------------------------------------------------------
    # Retry wrapper
    # ------------------------------------------------------------------

    def _with_retry(self, operation: str, fn: Callable[[], T]) -> T:
        last_error: Exception | None = None
        for attempt in range(self.retry_attempts):
            try:
                return fn()
            except DBAPIError as e:
                if not _is_transient(e):
                    raise
                last_error = e
                wait_time = self.retry_backoff_seconds * (2**attempt)
                logger.warning(
                    "Storage {} failed on attempt {}/{}: {}. Retrying in {:.2f}s",
                    operation,
                    attempt + 1,
                    self.retry_attempts,
                    e.orig if e.orig is not None else e,
                    wait_time,
                )
                if attempt < self.retry_attempts - 1:
                    time.sleep(wait_time)

        logger.error("Storage {} failed after {} attempts: {}", operation, self.retry_attempts, last_error)
        raise StorageUnavailable(
            f"storage {operation} failed after {self.retry_attempts} attempts",
            operation=operation,
        )

    # ------------------------------------------------------------------
    # DocumentStore
    # ------------------------------------------------------------------

    def get(self, collection: str, entity_id: str) -> dict[str, Any]:
        def op() -> dict[str, Any]:
            with session_scope(self._factory) as session:
                row = session.get(DocumentRecord, (collection, entity_id))
                if row is None:
                    raise NotFound(collection, entity_id)
                return self._to_record(row)

        return self._with_retry("get", op)

    def list(
        self,
        collection: str,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        def op() -> list[dict[str, Any]]:
            with session_scope(self._factory) as session:
                rows = session.scalars(
                    select(DocumentRecord).where(DocumentRecord.collection == collection)
                ).all()
                return [r for r in (self._to_record(row) for row in rows) if matches(r, filters)]

        records = self._with_retry("list", op)
        return sort_records(records, order_by, descending, limit)

    def create(
        self,
        collection: str,
        data: Mapping[str, Any],
        unique_key: str | None = None,
    ) -> str:
        def op() -> str:
            now = self._clock()
            entity_id = uuid.uuid4().hex
            record = resolve_timestamps(data, now)
            record["id"] = entity_id
            try:
                with session_scope(self._factory) as session:
                    session.add(
                        DocumentRecord(
                            collection=collection,
                            id=entity_id,
                            unique_key=unique_key,
                            version=1,
                            data=dumps(record),
                            created_at=now,
                            updated_at=now,
                        )
                    )
            except IntegrityError:
                existing = self._holder_of(collection, unique_key)
                raise DuplicateRequest(
                    f"{collection} key {unique_key} already taken",
                    existing=existing,
                ) from None
            return entity_id

        return self._with_retry("create", op)

    def update(
        self,
        collection: str,
        entity_id: str,
        patch: Mapping[str, Any],
        precondition: Mapping[str, Any] | None = None,
        release_key: bool = False,
    ) -> dict[str, Any]:
        def op() -> dict[str, Any]:
            for _ in range(CAS_ROUNDS):
                with session_scope(self._factory) as session:
                    row = session.get(DocumentRecord, (collection, entity_id))
                    if row is None:
                        raise NotFound(collection, entity_id)
                    current = loads(row.data)
                    if not matches(current, precondition):
                        raise PreconditionFailed(
                            f"{collection} record {entity_id} changed concurrently",
                            precondition=dict(precondition or {}),
                        )
                    now = self._clock()
                    updated = {**current, **resolve_timestamps(patch, now)}
                    updated["id"] = entity_id
                    values: dict[str, Any] = {
                        "data": dumps(updated),
                        "version": row.version + 1,
                        "updated_at": now,
                    }
                    if release_key:
                        values["unique_key"] = None
                    result = session.execute(
                        update(DocumentRecord)
                        .where(
                            DocumentRecord.collection == collection,
                            DocumentRecord.id == entity_id,
                            DocumentRecord.version == row.version,
                        )
                        .values(**values)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 1:
                        return updated
                logger.debug("Version race on {}/{}, re-reading", collection, entity_id)
            raise PreconditionFailed(
                f"{collection} record {entity_id} kept changing during update",
                precondition=dict(precondition or {}),
            )

        return self._with_retry("update", op)

    def delete(self, collection: str, entity_id: str) -> None:
        def op() -> None:
            with session_scope(self._factory) as session:
                result = session.execute(
                    delete(DocumentRecord).where(
                        DocumentRecord.collection == collection,
                        DocumentRecord.id == entity_id,
                    )
                )
                if result.rowcount == 0:
                    raise NotFound(collection, entity_id)

        self._with_retry("delete", op)

    def put(self, collection: str, entity_id: str, data: Mapping[str, Any]) -> None:
        """Insert or replace a record under a caller-chosen id (external collections)."""

        def op() -> None:
            now = self._clock()
            record = resolve_timestamps(data, now)
            record["id"] = entity_id
            with session_scope(self._factory) as session:
                row = session.get(DocumentRecord, (collection, entity_id))
                if row is None:
                    session.add(
                        DocumentRecord(
                            collection=collection,
                            id=entity_id,
                            version=1,
                            data=dumps(record),
                            created_at=now,
                            updated_at=now,
                        )
                    )
                else:
                    row.data = dumps(record)
                    row.version += 1
                    row.updated_at = now

        self._with_retry("put", op)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _holder_of(self, collection: str, unique_key: str | None) -> dict[str, Any] | None:
        if unique_key is None:
            return None
        with session_scope(self._factory) as session:
            row = session.scalars(
                select(DocumentRecord).where(
                    DocumentRecord.collection == collection,
                    DocumentRecord.unique_key == unique_key,
                )
            ).first()
            return self._to_record(row) if row is not None else None

    @staticmethod
    def _to_record(row: DocumentRecord) -> dict[str, Any]:
        record = loads(row.data)
        record["id"] = row.id
        return record
