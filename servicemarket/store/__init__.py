"""
Document store clients (SQL-backed and in-memory).
"""

from .base import Document, DocumentStore, VersionConflict, WriteBatch
from .memory import InMemoryDocumentStore
from .sql import SqlDocumentStore


def build_store(settings) -> DocumentStore:
    if settings.store_backend == "memory":
        return InMemoryDocumentStore()
    return SqlDocumentStore.from_url(settings.database_url)


__all__ = [
    "Document",
    "DocumentStore",
    "VersionConflict",
    "WriteBatch",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "build_store",
]
