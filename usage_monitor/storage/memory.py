"""
In-Memory Document Store

Thread-safe document storage for single-process deployments and tests.
Production deployments that need durability should use the SQLite backend
or another DocumentStore implementation.

The store uses threading.Lock so that concurrent appends from many call
sites and concurrent reads from the HTTP layer never observe a partially
written document.
"""

import copy
import threading
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any

from usage_monitor.storage.base import (
    DocumentNotFoundError,
    parse_timestamp,
    validate_field_names,
)


class InMemoryDocumentStore:
    """
    Thread-safe in-memory document storage.

    Each collection keeps documents in insertion order alongside their
    parsed timestamp, so range queries never re-parse stored values.

    Example:
        store = InMemoryDocumentStore()
        doc_id = store.append("ai_metrics", {"timestamp": "2026-10-18T09:00:00Z", ...})
        docs = store.query("ai_metrics", start=..., end=...)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._collections: dict[str, dict[str, tuple[datetime, dict[str, Any]]]] = (
            defaultdict(dict)
        )

    def append(self, collection: str, document: dict[str, Any]) -> str:
        """
        Append a document to a collection.

        Thread-safe. The stored document is a deep copy carrying the
        assigned id.

        Raises:
            StoreError: If the document has no valid timestamp
        """
        ts = parse_timestamp(document.get("timestamp"))
        doc_id = uuid.uuid4().hex
        stored = copy.deepcopy(document)
        stored["id"] = doc_id

        with self._lock:
            self._collections[collection][doc_id] = (ts, stored)
        return doc_id

    def query(
        self,
        collection: str,
        start: datetime | None = None,
        end: datetime | None = None,
        filters: dict[str, Any] | None = None,
        newest_first: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Query a collection by timestamp range and equality filters.

        Thread-safe. Returns copies ordered by timestamp; ties keep
        insertion order (reversed when newest_first is set).
        """
        validate_field_names(filters)
        filters = filters or {}
        start = parse_timestamp(start) if start is not None else None
        end = parse_timestamp(end) if end is not None else None

        with self._lock:
            entries = list(self._collections.get(collection, {}).values())

        matched = [
            (ts, doc)
            for ts, doc in entries
            if (start is None or ts >= start)
            and (end is None or ts < end)
            and all(doc.get(key) == value for key, value in filters.items())
        ]
        matched.sort(key=lambda entry: entry[0])
        if newest_first:
            matched.reverse()
        if limit is not None:
            matched = matched[:limit]

        return [copy.deepcopy(doc) for _, doc in matched]

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Thread-safe lookup of a single document."""
        with self._lock:
            entry = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(entry[1]) if entry else None

    def update_if(
        self,
        collection: str,
        doc_id: str,
        expected: dict[str, Any],
        changes: dict[str, Any],
    ) -> bool:
        """
        Atomic check-then-set on a single document.

        The precondition check and the write happen under the same lock,
        so two concurrent callers can never both succeed.
        """
        validate_field_names(expected)
        validate_field_names(changes)

        with self._lock:
            entry = self._collections.get(collection, {}).get(doc_id)
            if entry is None:
                raise DocumentNotFoundError(collection, doc_id)

            _, doc = entry
            if any(doc.get(key) != value for key, value in expected.items()):
                return False

            doc.update(copy.deepcopy(changes))
            return True

    def ping(self) -> None:
        """The in-memory store is always reachable."""
        return None

    def count(self, collection: str) -> int:
        """Number of documents in a collection."""
        with self._lock:
            return len(self._collections.get(collection, {}))

    def reset(self) -> None:
        """
        Remove all documents.

        Thread-safe. Primarily used for testing.
        """
        with self._lock:
            self._collections.clear()
