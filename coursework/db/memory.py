"""
In-process document store.

Backs the unit tests and the ``memory`` backend. A single lock makes every
call atomic, which is exactly the guarantee the SQL store gives through
unique constraints and versioned updates.
"""

from __future__ import annotations

import copy
import threading
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from loguru import logger

from coursework.core.errors import DuplicateRequest, NotFound, PreconditionFailed
from coursework.db.store import matches, resolve_timestamps, sort_records, utcnow


class InMemoryStore:
    """Lock-guarded dict-of-dicts implementation of DocumentStore."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, dict[str, dict[str, Any]]] = {}
        # (collection, unique_key) -> record id, and the reverse per record
        self._keys: dict[tuple[str, str], str] = {}
        self._key_of: dict[tuple[str, str], str] = {}

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._records.setdefault(collection, {})

    def get(self, collection: str, entity_id: str) -> dict[str, Any]:
        with self._lock:
            record = self._collection(collection).get(entity_id)
            if record is None:
                raise NotFound(collection, entity_id)
            return copy.deepcopy(record)

    def list(
        self,
        collection: str,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            records = [
                copy.deepcopy(r) for r in self._collection(collection).values() if matches(r, filters)
            ]
        return sort_records(records, order_by, descending, limit)

    def create(
        self,
        collection: str,
        data: Mapping[str, Any],
        unique_key: str | None = None,
    ) -> str:
        with self._lock:
            if unique_key is not None:
                holder = self._keys.get((collection, unique_key))
                if holder is not None:
                    raise DuplicateRequest(
                        f"{collection} key {unique_key} already taken",
                        existing=copy.deepcopy(self._collection(collection)[holder]),
                    )
            entity_id = uuid.uuid4().hex
            record = resolve_timestamps(data, self._clock())
            record["id"] = entity_id
            self._collection(collection)[entity_id] = copy.deepcopy(record)
            if unique_key is not None:
                self._keys[(collection, unique_key)] = entity_id
                self._key_of[(collection, entity_id)] = unique_key
            return entity_id

    def update(
        self,
        collection: str,
        entity_id: str,
        patch: Mapping[str, Any],
        precondition: Mapping[str, Any] | None = None,
        release_key: bool = False,
    ) -> dict[str, Any]:
        with self._lock:
            records = self._collection(collection)
            current = records.get(entity_id)
            if current is None:
                raise NotFound(collection, entity_id)
            if not matches(current, precondition):
                logger.debug("Precondition {} failed on {}/{}", precondition, collection, entity_id)
                raise PreconditionFailed(
                    f"{collection} record {entity_id} changed concurrently",
                    precondition=dict(precondition or {}),
                )
            updated = {**current, **resolve_timestamps(patch, self._clock())}
            updated["id"] = entity_id
            records[entity_id] = updated
            if release_key:
                key = self._key_of.pop((collection, entity_id), None)
                if key is not None:
                    self._keys.pop((collection, key), None)
            return copy.deepcopy(updated)

    def delete(self, collection: str, entity_id: str) -> None:
        with self._lock:
            if self._collection(collection).pop(entity_id, None) is None:
                raise NotFound(collection, entity_id)
            key = self._key_of.pop((collection, entity_id), None)
            if key is not None:
                self._keys.pop((collection, key), None)

    def put(self, collection: str, entity_id: str, data: Mapping[str, Any]) -> None:
        """Insert a record under a caller-chosen id (seeding external collections)."""
        with self._lock:
            record = resolve_timestamps(data, self._clock())
            record["id"] = entity_id
            self._collection(collection)[entity_id] = record
