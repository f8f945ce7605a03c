"""
SQLite Document Store

Durable DocumentStore backend on the standard-library sqlite3 module.
All collections share one table; documents are stored as JSON text next to
a numeric timestamp column used for range queries and ordering.

A new connection is opened per operation, so the store is safe to share
between threads. Use a file path: ':memory:' would give every operation
its own empty database.
"""

import json
import sqlite3
import uuid
from datetime import datetime
from typing import Any

from usage_monitor.storage.base import (
    DocumentNotFoundError,
    StoreError,
    parse_timestamp,
    validate_field_names,
)


class SQLiteDocumentStore:
    """
    DocumentStore persisted in a SQLite database file.

    Metric records and decision records are only ever appended; alerts are
    appended and then updated through update_if, which performs its check
    and write inside one IMMEDIATE transaction.
    """

    def __init__(self, db_path: str = "usage_monitor.db", timeout: float = 5.0):
        """
        Initialize the store and create the schema if needed.

        Args:
            db_path: Path to SQLite database file
            timeout: Seconds to wait for a locked database
        """
        self.db_path = db_path
        self.timeout = timeout
        self.initialize_schema()

    def _connect(self) -> sqlite3.Connection:
        """Open an autocommit connection; transactions are explicit."""
        try:
            return sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}") from e

    def initialize_schema(self) -> None:
        """Create the documents table and its range index if they don't exist."""
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    collection TEXT NOT NULL,
                    ts REAL NOT NULL,
                    data TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_collection_ts
                ON documents (collection, ts)
            """)
        except sqlite3.Error as e:
            raise StoreError(f"Schema initialization failed: {e}") from e
        finally:
            conn.close()

    def append(self, collection: str, document: dict[str, Any]) -> str:
        """Insert a single document and return its id."""
        ts = parse_timestamp(document.get("timestamp"))
        doc_id = uuid.uuid4().hex
        stored = {**document, "id": doc_id}

        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO documents (id, collection, ts, data) VALUES (?, ?, ?, ?)",
                (doc_id, collection, ts.timestamp(), json.dumps(stored)),
            )
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise StoreError(f"Insert into {collection} failed: {e}") from e
        finally:
            conn.close()
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
        """Range + equality query ordered by timestamp, then insertion order."""
        validate_field_names(filters)

        query = "SELECT data FROM documents WHERE collection = ?"
        params: list[Any] = [collection]

        if start is not None:
            query += " AND ts >= ?"
            params.append(parse_timestamp(start).timestamp())
        if end is not None:
            query += " AND ts < ?"
            params.append(parse_timestamp(end).timestamp())

        for key, value in (filters or {}).items():
            if value is None:
                query += " AND json_extract(data, ?) IS NULL"
                params.append(f"$.{key}")
            else:
                query += " AND json_extract(data, ?) = ?"
                params.extend([f"$.{key}", value])

        direction = "DESC" if newest_first else "ASC"
        query += f" ORDER BY ts {direction}, rowid {direction}"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Query on {collection} failed: {e}") from e
        finally:
            conn.close()

        return [json.loads(row[0]) for row in rows]

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Fetch a single document by id."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Lookup in {collection} failed: {e}") from e
        finally:
            conn.close()

        return json.loads(row[0]) if row else None

    def update_if(
        self,
        collection: str,
        doc_id: str,
        expected: dict[str, Any],
        changes: dict[str, Any],
    ) -> bool:
        """
        Atomic check-then-set.

        BEGIN IMMEDIATE takes the write lock before reading, so no other
        writer can change the document between the check and the update.
        """
        validate_field_names(expected)
        validate_field_names(changes)

        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
            if row is None:
                conn.execute("ROLLBACK")
                raise DocumentNotFoundError(collection, doc_id)

            doc = json.loads(row[0])
            if any(doc.get(key) != value for key, value in expected.items()):
                conn.execute("ROLLBACK")
                return False

            doc.update(changes)
            conn.execute(
                "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
                (json.dumps(doc), collection, doc_id),
            )
            conn.execute("COMMIT")
            return True
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StoreError(f"Update in {collection} failed: {e}") from e
        finally:
            conn.close()

    def ping(self) -> None:
        """Run a trivial statement to prove the database is reachable."""
        conn = self._connect()
        try:
            conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Database unreachable: {e}") from e
        finally:
            conn.close()
