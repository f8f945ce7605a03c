"""
Document Store Interface

The monitor persists three collections (metric records, decision records,
alerts) through a generic document-store client. Any backend that provides
the four operations below can be injected:

    append   - add a document to a collection, returning its id
    query    - timestamp-range + equality-filter query, ordered by timestamp
    get      - fetch one document by id
    update_if - atomic check-then-set on a single document

Documents are JSON-compatible dicts. Every document carries an ISO-8601
"timestamp" field used for range queries and ordering; documents with equal
timestamps keep insertion order.
"""

import re
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable


_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StoreError(Exception):
    """Raised when the backing document store fails."""


class DocumentNotFoundError(StoreError):
    """Raised when a document id does not exist in a collection."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document {doc_id!r} not found in {collection!r}")
        self.collection = collection
        self.doc_id = doc_id


@runtime_checkable
class DocumentStore(Protocol):
    """Generic document-store client used by every repository in the monitor."""

    def append(self, collection: str, document: dict[str, Any]) -> str:
        """Append a document and return its assigned id."""
        ...

    def query(
        self,
        collection: str,
        start: datetime | None = None,
        end: datetime | None = None,
        filters: dict[str, Any] | None = None,
        newest_first: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return documents with start <= timestamp < end matching all filters."""
        ...

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return one document, or None if the id is unknown."""
        ...

    def update_if(
        self,
        collection: str,
        doc_id: str,
        expected: dict[str, Any],
        changes: dict[str, Any],
    ) -> bool:
        """
        Apply changes only if every expected field currently matches.

        Returns:
            True if the update was applied, False if a precondition failed

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        ...

    def ping(self) -> None:
        """Raise StoreError if the store is unreachable."""
        ...


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a document timestamp into an aware UTC datetime.

    Accepts datetimes and ISO-8601 strings (including a trailing 'Z').

    Raises:
        StoreError: If the value is missing or not a valid timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise StoreError(f"Invalid document timestamp: {value!r}") from e
    else:
        raise StoreError(f"Document timestamp missing or invalid: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def validate_field_names(fields: dict[str, Any] | None) -> None:
    """Reject filter or update keys that are not plain identifiers."""
    for name in fields or {}:
        if not _FIELD_NAME.match(name):
            raise StoreError(f"Invalid field name: {name!r}")
