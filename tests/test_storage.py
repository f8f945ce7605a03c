"""
Document Store Tests

Validates both DocumentStore backends against the same contract:
half-open timestamp ranges, stable ordering, equality filters and the
atomic conditional update.

Test Categories:
1. TestDocumentStoreContract - Shared behavior, run on every backend
2. TestParseTimestamp - Timestamp parsing and normalization
3. TestInMemoryDocumentStore - Memory-only helpers (count, reset)
4. TestCreateDocumentStore - Backend selection from settings
"""

from datetime import datetime, timedelta, timezone

import pytest

from usage_monitor.config import Settings
from usage_monitor.storage import (
    DocumentNotFoundError,
    DocumentStore,
    InMemoryDocumentStore,
    SQLiteDocumentStore,
    StoreError,
    create_document_store,
    parse_timestamp,
)

T0 = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def doc(offset_minutes: int = 0, **fields) -> dict:
    return {"timestamp": (T0 + timedelta(minutes=offset_minutes)).isoformat(), **fields}


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Each contract test runs once per backend."""
    if request.param == "memory":
        return InMemoryDocumentStore()
    return SQLiteDocumentStore(str(tmp_path / "test.db"))


class TestDocumentStoreContract:
    """Tests shared by every DocumentStore implementation."""

    def test_implements_protocol(self, store):
        assert isinstance(store, DocumentStore)

    def test_append_assigns_id(self, store):
        doc_id = store.append("c", doc(name="a"))

        stored = store.get("c", doc_id)
        assert stored["id"] == doc_id
        assert stored["name"] == "a"

    def test_append_does_not_mutate_input(self, store):
        original = doc(name="a")
        store.append("c", original)

        assert "id" not in original

    def test_get_unknown_returns_none(self, store):
        assert store.get("c", "missing") is None

    def test_collections_are_isolated(self, store):
        store.append("a", doc())
        assert store.query("b") == []

    def test_range_is_half_open(self, store):
        """start is inclusive, end is exclusive."""
        store.append("c", doc(0, name="at_start"))
        store.append("c", doc(30, name="inside"))
        store.append("c", doc(60, name="at_end"))

        docs = store.query("c", start=T0, end=T0 + timedelta(minutes=60))

        assert [d["name"] for d in docs] == ["at_start", "inside"]

    def test_query_orders_by_timestamp(self, store):
        store.append("c", doc(20, name="late"))
        store.append("c", doc(10, name="early"))

        assert [d["name"] for d in store.query("c")] == ["early", "late"]

    def test_newest_first_with_limit(self, store):
        for i in range(5):
            store.append("c", doc(i, n=i))

        docs = store.query("c", newest_first=True, limit=2)

        assert [d["n"] for d in docs] == [4, 3]

    def test_equal_timestamps_keep_insertion_order(self, store):
        for name in ["first", "second", "third"]:
            store.append("c", doc(0, name=name))

        assert [d["name"] for d in store.query("c")] == ["first", "second", "third"]
        assert [d["name"] for d in store.query("c", newest_first=True)] == [
            "third",
            "second",
            "first",
        ]

    def test_equality_filters(self, store):
        store.append("c", doc(0, service="groq", ok=True))
        store.append("c", doc(1, service="huggingface", ok=True))
        store.append("c", doc(2, service="groq", ok=False))

        docs = store.query("c", filters={"service": "groq", "ok": False})

        assert len(docs) == 1
        assert docs[0]["service"] == "groq"
        assert docs[0]["ok"] is False

    def test_filter_on_none_value(self, store):
        store.append("c", doc(0, key=None))
        store.append("c", doc(1, key="x"))

        docs = store.query("c", filters={"key": None})

        assert len(docs) == 1

    def test_invalid_filter_name_rejected(self, store):
        with pytest.raises(StoreError):
            store.query("c", filters={"bad key; DROP": 1})

    def test_missing_timestamp_rejected(self, store):
        with pytest.raises(StoreError):
            store.append("c", {"name": "no timestamp"})

    def test_update_if_applies_when_expected_matches(self, store):
        doc_id = store.append("c", doc(acknowledged=False))

        applied = store.update_if("c", doc_id, {"acknowledged": False}, {"acknowledged": True})

        assert applied is True
        assert store.get("c", doc_id)["acknowledged"] is True

    def test_update_if_rejects_when_expected_differs(self, store):
        doc_id = store.append("c", doc(acknowledged=True, by="first"))

        applied = store.update_if(
            "c", doc_id, {"acknowledged": False}, {"acknowledged": True, "by": "second"}
        )

        assert applied is False
        assert store.get("c", doc_id)["by"] == "first"

    def test_update_if_unknown_id_raises(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.update_if("c", "missing", {}, {"x": 1})

    def test_ping(self, store):
        store.ping()


class TestParseTimestamp:
    """Tests for parse_timestamp()."""

    def test_parses_trailing_z(self):
        assert parse_timestamp("2026-10-18T09:00:00Z") == T0

    def test_naive_values_are_utc(self):
        assert parse_timestamp(datetime(2026, 10, 18, 9, 0)) == T0

    def test_offsets_are_normalized(self):
        parsed = parse_timestamp("2026-10-18T11:00:00+02:00")

        assert parsed == T0
        assert parsed.tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, 12345, "not a date"])
    def test_invalid_values_raise(self, value):
        with pytest.raises(StoreError):
            parse_timestamp(value)


class TestInMemoryDocumentStore:
    """Tests for memory-only helpers."""

    def test_count_and_reset(self):
        store = InMemoryDocumentStore()
        store.append("c", doc())
        store.append("c", doc())

        assert store.count("c") == 2

        store.reset()

        assert store.count("c") == 0

    def test_returned_documents_are_copies(self):
        store = InMemoryDocumentStore()
        doc_id = store.append("c", doc(tags=["a"]))

        store.get("c", doc_id)["tags"].append("b")

        assert store.get("c", doc_id)["tags"] == ["a"]


class TestSQLiteDocumentStore:
    """Tests for SQLite durability."""

    def test_documents_survive_reopen(self, tmp_path):
        path = str(tmp_path / "durable.db")
        doc_id = SQLiteDocumentStore(path).append("c", doc(name="kept"))

        reopened = SQLiteDocumentStore(path)

        assert reopened.get("c", doc_id)["name"] == "kept"


class TestCreateDocumentStore:
    """Tests for backend selection."""

    def test_memory_backend(self):
        store = create_document_store(Settings(store_backend="memory"))
        assert isinstance(store, InMemoryDocumentStore)

    def test_sqlite_backend(self, tmp_path):
        settings = Settings(store_backend="sqlite", sqlite_path=str(tmp_path / "m.db"))
        assert isinstance(create_document_store(settings), SQLiteDocumentStore)

    def test_blank_sqlite_path_rejected(self):
        with pytest.raises(ValueError):
            Settings(sqlite_path="   ")
