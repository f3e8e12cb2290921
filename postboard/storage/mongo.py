"""
MongoDB storage implementation (motor).

Ids are the application-generated strings, stored as ``_id``. Unique
indexes for UNIQUE_FIELDS are created by ``initialize()``.
"""

from __future__ import annotations

import logging
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from postboard.storage.base import (
    UNIQUE_FIELDS,
    DocumentStorage,
    SortSpec,
    UniqueConstraintError,
)

logger = logging.getLogger(__name__)


class MongoDocumentStorage(DocumentStorage):
    """Document storage backed by a MongoDB database."""

    def __init__(self, uri: str, database: str, client: AsyncIOMotorClient | None = None):
        self._client = client or AsyncIOMotorClient(uri, tz_aware=True)
        self._database = database
        self._db = self._client[database]

    async def initialize(self) -> None:
        for collection, fields in UNIQUE_FIELDS.items():
            for field in fields:
                await self._db[collection].create_index(field, unique=True)
        logger.info(f"MongoDB indexes ready on database '{self._database}'")

    async def close(self) -> None:
        self._client.close()

    @staticmethod
    def _unique_error(collection: str, error: DuplicateKeyError) -> UniqueConstraintError:
        key_pattern = (error.details or {}).get("keyPattern") or {}
        field = next(iter(key_pattern), "_id")
        return UniqueConstraintError(collection, field)

    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        try:
            await self._db[collection].replace_one({"_id": id}, {**data, "_id": id}, upsert=True)
        except DuplicateKeyError as e:
            raise self._unique_error(collection, e) from e

    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        return await self._db[collection].find_one({"_id": id})

    async def find_one(self, collection: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        return await self._db[collection].find_one(filters)

    async def delete(self, collection: str, id: str) -> bool:
        result = await self._db[collection].delete_one({"_id": id})
        return result.deleted_count == 1

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        sort: SortSpec | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        cursor = self._db[collection].find(filters or {})
        if sort:
            cursor = cursor.sort(sort)
        if offset:
            cursor = cursor.skip(offset)
        if limit is not None:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def search(self, collection: str, field: str, pattern: str) -> list[dict[str, Any]]:
        cursor = self._db[collection].find({field: {"$regex": pattern, "$options": "i"}})
        return await cursor.to_list(length=None)

    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        return await self._db[collection].count_documents(filters or {})

    async def sample(self, collection: str, size: int) -> list[dict[str, Any]]:
        cursor = self._db[collection].aggregate([{"$sample": {"size": size}}])
        return await cursor.to_list(length=None)

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
        operations: dict[str, Any] = {}
        if set_fields:
            operations["$set"] = set_fields
        if add_to_set:
            operations["$addToSet"] = add_to_set
        if pull:
            operations["$pull"] = pull
        if inc:
            operations["$inc"] = inc
        selector = {"_id": id, **(where or {})}
        if not operations:
            return await self._db[collection].find_one(selector)

        try:
            return await self._db[collection].find_one_and_update(
                selector,
                operations,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            raise self._unique_error(collection, e) from e
