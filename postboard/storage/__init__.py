"""
Storage abstractions.

- DocumentStorage → MongoDB (motor) in production
- InMemoryDocumentStorage → development and tests
"""

from __future__ import annotations

from postboard.config import Settings
from postboard.storage.base import (
    ASCENDING,
    DESCENDING,
    UNIQUE_FIELDS,
    Collections,
    DocumentStorage,
    UniqueConstraintError,
)
from postboard.storage.local import InMemoryDocumentStorage, create_local_storage


def create_storage(settings: Settings) -> DocumentStorage:
    """Create the storage backend selected by ``storage_backend``."""
    if settings.storage_backend == "mongo":
        if not settings.mongodb_uri:
            raise RuntimeError("MONGODB_URI is not set")
        from postboard.storage.mongo import MongoDocumentStorage

        return MongoDocumentStorage(settings.mongodb_uri, settings.mongodb_database)
    if settings.storage_backend == "memory":
        return create_local_storage()
    raise RuntimeError(f"Unknown storage backend: {settings.storage_backend}")


__all__ = [
    "ASCENDING",
    "DESCENDING",
    "UNIQUE_FIELDS",
    "Collections",
    "DocumentStorage",
    "InMemoryDocumentStorage",
    "UniqueConstraintError",
    "create_local_storage",
    "create_storage",
]
