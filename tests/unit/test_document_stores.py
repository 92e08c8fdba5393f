"""
Tests for the document store contract.

Both implementations run the same checks; the SQL store uses in-memory
SQLite.
"""

import threading
from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import OperationalError

from coursework.core.errors import (
    DuplicateRequest,
    NotFound,
    PreconditionFailed,
    StorageUnavailable,
)
from coursework.db import sql_store as sql_store_module
from coursework.db.database import (
    check_database_health,
    create_db_engine,
    init_db,
    make_session_factory,
    session_scope,
)
from coursework.db.memory import InMemoryStore
from coursework.db.models import DocumentRecord
from coursework.db.sql_store import SQLDocumentStore, dumps, loads
from coursework.db.store import SERVER_TIMESTAMP, resolve_timestamps, sort_records

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


def _sql_store():
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    return SQLDocumentStore(engine, clock=lambda: FIXED_NOW, retry_backoff_seconds=0.0)


@pytest.fixture(params=["memory", "sql"])
def doc_store(request):
    if request.param == "memory":
        return InMemoryStore(clock=lambda: FIXED_NOW)
    return _sql_store()


class TestDocumentStoreContract:
    def test_create_then_get(self, doc_store):
        record_id = doc_store.create("courses", {"title": "Algebra", "createdAt": SERVER_TIMESTAMP})

        record = doc_store.get("courses", record_id)

        assert record["id"] == record_id
        assert record["title"] == "Algebra"
        assert record["createdAt"] == FIXED_NOW

    def test_get_missing_raises_not_found(self, doc_store):
        with pytest.raises(NotFound):
            doc_store.get("courses", "nope")

    def test_list_filters_and_orders(self, doc_store):
        doc_store.create("enrollments", {"studentId": "s1", "rank": 2})
        doc_store.create("enrollments", {"studentId": "s1", "rank": 1})
        doc_store.create("enrollments", {"studentId": "s2", "rank": 3})

        records = doc_store.list("enrollments", {"studentId": "s1"}, order_by="rank")

        assert [r["rank"] for r in records] == [1, 2]

    def test_list_empty_collection(self, doc_store):
        assert doc_store.list("certificates") == []

    def test_unique_key_rejects_second_create(self, doc_store):
        first = doc_store.create("enrollments", {"status": "pending"}, unique_key="s1:c1")

        with pytest.raises(DuplicateRequest) as exc_info:
            doc_store.create("enrollments", {"status": "pending"}, unique_key="s1:c1")

        assert exc_info.value.existing["id"] == first
        assert len(doc_store.list("enrollments")) == 1

    def test_update_with_matching_precondition(self, doc_store):
        record_id = doc_store.create("enrollments", {"status": "pending", "progress": 0})

        updated = doc_store.update(
            "enrollments", record_id, {"status": "approved"}, precondition={"status": "pending"}
        )

        assert updated["status"] == "approved"
        assert updated["progress"] == 0

    def test_update_with_stale_precondition_fails(self, doc_store):
        record_id = doc_store.create("enrollments", {"status": "approved"})

        with pytest.raises(PreconditionFailed):
            doc_store.update(
                "enrollments", record_id, {"status": "rejected"}, precondition={"status": "pending"}
            )
        assert doc_store.get("enrollments", record_id)["status"] == "approved"

    def test_update_missing_raises_not_found(self, doc_store):
        with pytest.raises(NotFound):
            doc_store.update("enrollments", "nope", {"status": "approved"})

    def test_release_key_allows_new_create(self, doc_store):
        record_id = doc_store.create("certificates", {"status": "pending"}, unique_key="s1:c1")
        doc_store.update("certificates", record_id, {"status": "rejected"}, release_key=True)

        second = doc_store.create("certificates", {"status": "pending"}, unique_key="s1:c1")

        assert second != record_id
        assert len(doc_store.list("certificates")) == 2

    def test_delete(self, doc_store):
        record_id = doc_store.create("courses", {"title": "Gone"})

        doc_store.delete("courses", record_id)

        with pytest.raises(NotFound):
            doc_store.get("courses", record_id)
        with pytest.raises(NotFound):
            doc_store.delete("courses", record_id)

    def test_put_uses_caller_id(self, doc_store):
        doc_store.put("users", "u-1", {"role": "student", "displayName": "Ada"})

        assert doc_store.get("users", "u-1")["displayName"] == "Ada"


class TestConcurrentCreates:
    """Racing creates under one unique key produce exactly one record."""

    def test_only_one_thread_wins(self):
        store = InMemoryStore()
        barrier = threading.Barrier(8)
        outcomes = []

        def worker():
            barrier.wait()
            try:
                store.create("assessmentResults", {"score": 1}, unique_key="s1:a1")
                outcomes.append("created")
            except DuplicateRequest:
                outcomes.append("duplicate")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("created") == 1
        assert len(store.list("assessmentResults")) == 1


class TestSQLStoreRetry:
    """Transient failures are retried and then surface as StorageUnavailable."""

    def test_exhausted_retries_raise_storage_unavailable(self, monkeypatch):
        store = _sql_store()
        calls = []

        def broken_scope(*args, **kwargs):
            calls.append(1)
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        monkeypatch.setattr("coursework.db.sql_store.session_scope", broken_scope)

        with pytest.raises(StorageUnavailable):
            store.get("courses", "c-1")
        assert len(calls) == store.retry_attempts

    def test_transient_failure_then_success(self, monkeypatch):
        store = _sql_store()
        record_id = store.create("courses", {"title": "Retry"})
        real_scope = sql_store_module.session_scope
        failures = iter([True])

        def flaky_scope(*args, **kwargs):
            if next(failures, False):
                raise OperationalError("SELECT 1", {}, Exception("connection reset"))
            return real_scope(*args, **kwargs)

        monkeypatch.setattr("coursework.db.sql_store.session_scope", flaky_scope)

        assert store.get("courses", record_id)["title"] == "Retry"


class TestHelpers:
    def test_datetimes_survive_json(self):
        record = {"at": FIXED_NOW, "nested": {"at": FIXED_NOW}, "n": 1}

        assert loads(dumps(record)) == record

    def test_resolve_timestamps_only_replaces_sentinel(self):
        resolved = resolve_timestamps({"a": SERVER_TIMESTAMP, "b": None}, FIXED_NOW)

        assert resolved == {"a": FIXED_NOW, "b": None}

    def test_sort_records_puts_missing_last(self):
        records = [{"k": 2}, {"k": None}, {"k": 1}]

        ordered = sort_records(records, "k", descending=True, limit=None)

        assert [r["k"] for r in ordered] == [2, 1, None]


class TestDatabaseHelpers:
    def test_health_check_on_live_engine(self):
        assert check_database_health(create_db_engine("sqlite:///:memory:")) == ("ok", None)

    def test_health_check_reports_failure(self, tmp_path):
        missing = tmp_path / "absent" / "lms.db"

        status, error = check_database_health(create_db_engine(f"sqlite:///{missing}"))

        assert status == "error"
        assert error

    def test_session_scope_rolls_back_on_error(self):
        engine = create_db_engine("sqlite:///:memory:")
        init_db(engine)
        factory = make_session_factory(engine)

        with pytest.raises(RuntimeError):
            with session_scope(factory) as session:
                session.add(
                    DocumentRecord(
                        collection="courses",
                        id="c-1",
                        data="{}",
                        version=1,
                        created_at=FIXED_NOW,
                        updated_at=FIXED_NOW,
                    )
                )
                session.flush()
                raise RuntimeError("boom")

        with session_scope(factory) as session:
            assert session.get(DocumentRecord, ("courses", "c-1")) is None
