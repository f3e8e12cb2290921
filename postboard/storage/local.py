"""
In-memory storage implementation for development and tests.

Works without any external services. Documents are copied on the way in
and out so callers never hold a live reference into the store.
"""

from __future__ import annotations

import copy
import random
import re
from datetime import datetime, timezone
from typing import Any

from postboard.storage.base import (
    UNIQUE_FIELDS,
    DocumentStorage,
    SortSpec,
    UniqueConstraintError,
)


class InMemoryDocumentStorage(DocumentStorage):
    """In-memory document storage."""

    def __init__(self, unique_fields: dict[str, list[str]] | None = None):
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._unique = UNIQUE_FIELDS if unique_fields is None else unique_fields

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._data.setdefault(collection, {})

    def _check_unique(self, collection: str, id: str, data: dict[str, Any]) -> None:
        for field in self._unique.get(collection, []):
            if field not in data:
                continue
            for other_id, doc in self._collection(collection).items():
                if other_id != id and doc.get(field) == data[field]:
                    raise UniqueConstraintError(collection, field)

    @classmethod
    def _matches_value(cls, actual: Any, expected: Any) -> bool:
        if isinstance(expected, dict) and expected and all(k.startswith("$") for k in expected):
            for op, operand in expected.items():
                if op == "$ne":
                    if cls._matches_value(actual, operand):
                        return False
                elif op == "$gt":
                    if not isinstance(actual, (int, float)) or not actual > operand:
                        return False
                elif op == "$lt":
                    if not isinstance(actual, (int, float)) or not actual < operand:
                        return False
                else:
                    raise ValueError(f"Unsupported filter operator: {op}")
            return True
        # A scalar against an array field matches on membership, as in MongoDB
        if isinstance(actual, list) and not isinstance(expected, list):
            return expected in actual
        return actual == expected

    @classmethod
    def _matches(cls, doc: dict[str, Any], filters: dict[str, Any] | None) -> bool:
        if not filters:
            return True
        return all(cls._matches_value(doc.get(key), value) for key, value in filters.items())

    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        self._check_unique(collection, id, data)
        self._collection(collection)[id] = {
            **copy.deepcopy(data),
            "_id": id,
            "_updated_at": datetime.now(timezone.utc).isoformat(),
        }

    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        doc = self._collection(collection).get(id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find_one(self, collection: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        for doc in self._collection(collection).values():
            if self._matches(doc, filters):
                return copy.deepcopy(doc)
        return None

    async def delete(self, collection: str, id: str) -> bool:
        return self._collection(collection).pop(id, None) is not None

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        results = [doc for doc in self._collection(collection).values() if self._matches(doc, filters)]

        # Apply sort keys last-to-first so the first key wins
        for field, direction in reversed(sort or []):
            results.sort(key=lambda d: d.get(field, 0), reverse=direction < 0)

        end = None if limit is None else offset + limit
        return copy.deepcopy(results[offset:end])

    async def search(self, collection: str, field: str, pattern: str) -> list[dict[str, Any]]:
        regex = re.compile(pattern, re.IGNORECASE)
        return [
            copy.deepcopy(doc)
            for doc in self._collection(collection).values()
            if isinstance(doc.get(field), str) and regex.search(doc[field])
        ]

    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        return sum(1 for doc in self._collection(collection).values() if self._matches(doc, filters))

    async def sample(self, collection: str, size: int) -> list[dict[str, Any]]:
        docs = list(self._collection(collection).values())
        return copy.deepcopy(random.sample(docs, min(size, len(docs))))

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
        current = self._collection(collection).get(id)
        if current is None or not self._matches(current, where):
            return None

        doc = copy.deepcopy(current)
        for field, value in (set_fields or {}).items():
            doc[field] = copy.deepcopy(value)
        for field, value in (add_to_set or {}).items():
            values = doc.setdefault(field, [])
            if value not in values:
                values.append(value)
        for field, value in (pull or {}).items():
            doc[field] = [v for v in doc.get(field, []) if v != value]
        for field, amount in (inc or {}).items():
            doc[field] = doc.get(field, 0) + amount

        if set_fields:
            self._check_unique(collection, id, set_fields)
        doc["_updated_at"] = datetime.now(timezone.utc).isoformat()
        self._collection(collection)[id] = doc
        return copy.deepcopy(doc)


def create_local_storage() -> InMemoryDocumentStorage:
    """Create an empty in-memory store with the standard unique fields."""
    return InMemoryDocumentStorage()
