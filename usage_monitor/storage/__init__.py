"""
Storage module: Generic document-store clients.

Backends:
- InMemoryDocumentStore: thread-safe, process-local (default, tests)
- SQLiteDocumentStore: durable, file-backed

create_document_store() picks a backend from settings.
"""

from usage_monitor.config import Settings
from usage_monitor.storage.base import (
    DocumentNotFoundError,
    DocumentStore,
    StoreError,
    parse_timestamp,
)
from usage_monitor.storage.memory import InMemoryDocumentStore
from usage_monitor.storage.sqlite import SQLiteDocumentStore


def create_document_store(settings: Settings) -> DocumentStore:
    """
    Build the document store configured in settings.

    Args:
        settings: Application settings (store_backend, sqlite_path)

    Returns:
        A DocumentStore implementation
    """
    if settings.store_backend == "sqlite":
        return SQLiteDocumentStore(settings.sqlite_path)
    return InMemoryDocumentStore()


__all__ = [
    "DocumentStore",
    "StoreError",
    "DocumentNotFoundError",
    "parse_timestamp",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
    "create_document_store",
]
