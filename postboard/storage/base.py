"""
Storage abstraction layer.

All persistence goes through this interface. This allows swapping
implementations (in-memory → MongoDB) without changing service code.

Implementations:
- InMemoryDocumentStorage → development and tests
- MongoDocumentStorage → MongoDB via motor

Documents are plain dicts keyed by ``_id``. Update operators follow the
document-database vocabulary: add to set, pull, increment, set.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


ASCENDING = 1
DESCENDING = -1

SortSpec = list[tuple[str, int]]


class UniqueConstraintError(Exception):
    """A write would duplicate a value declared unique for the collection."""

    def __init__(self, collection: str, field: str):
        super().__init__(f"Duplicate value for {collection}.{field}")
        self.collection = collection
        self.field = field


# =============================================================================
# Storage Interface
# =============================================================================


class DocumentStorage(ABC):
    """
    Storage for structured documents (users, posts, comments, payments).

    No multi-document transactions are offered. Every method is a single
    round-trip against the backing store.
    """

    async def initialize(self) -> None:
        """Prepare the backend (indexes, connections). Called at startup."""
        pass

    async def close(self) -> None:
        """Release backend resources. Called at shutdown."""
        pass

    @abstractmethod
    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        """Insert or replace a document. Raises UniqueConstraintError."""
        pass

    @abstractmethod
    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        """Get a document by ID."""
        pass

    @abstractmethod
    async def find_one(self, collection: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        """Get the first document whose fields equal ``filters``."""
        pass

    @abstractmethod
    async def delete(self, collection: str, id: str) -> bool:
        """Delete a document."""
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        Query documents with optional equality filters.

        Without ``sort`` documents come back in store order. Sorting is
        stable only as far as the backend guarantees it.
        """
        pass

    @abstractmethod
    async def search(self, collection: str, field: str, pattern: str) -> list[dict[str, Any]]:
        """Documents whose ``field`` matches the regex ``pattern``, case-insensitive."""
        pass

    @abstractmethod
    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        """Count matching documents."""
        pass

    @abstractmethod
    async def sample(self, collection: str, size: int) -> list[dict[str, Any]]:
        """Up to ``size`` distinct documents picked at random."""
        pass

    @abstractmethod
    async def modify(
        self,
        collection: str,
        id: str,
        *,
        set_fields: dict[str, Any] | None = None,
        add_to_set: dict[str, Any] | None = None,
        pull: dict[str, Any] | None = None,
        inc: dict[str, int] | None = None,
        where: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """
        Apply update operators to one document atomically.

        ``where`` adds conditions the document must meet for the update to
        apply. Supported forms are equality, membership when the field is a
        list, ``{"$ne": value}``, ``{"$gt": number}`` and ``{"$lt": number}``.

        Returns the document after the update, or None if it does not exist
        or does not meet ``where``.
        """
        pass


# =============================================================================
# Collection Names
# =============================================================================


class Collections:
    """Standard collection names."""

    USERS = "users"
    POSTS = "posts"
    COMMENTS = "comments"
    PAYMENTS = "payments"


# Fields that must be unique across a collection
UNIQUE_FIELDS: dict[str, list[str]] = {
    Collections.USERS: ["email"],
    Collections.POSTS: ["title"],
}
