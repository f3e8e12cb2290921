"""
Base class for all services.

Services hold no request state. The caller's AuthContext is passed to
every operation that needs it, and each protected operation starts with a
single ``ctx.require(...)`` guard.
"""

from __future__ import annotations

from typing import TypeVar

from postboard.core.errors import NotFoundError
from postboard.core.models import Document
from postboard.storage import DocumentStorage

D = TypeVar("D", bound=Document)


class Service:
    """
    Base class for the domain services.

    Example:
        class PostService(Service):
            async def get(self, post_id: str) -> Post | None:
                return Post.from_doc(await self.storage.get(Collections.POSTS, post_id))
    """

    def __init__(self, storage: DocumentStorage):
        self.storage = storage

    async def _load(self, collection: str, model: type[D], id: str, missing_message: str) -> D:
        """Fetch a document by id or raise NotFoundError."""
        doc = await self.storage.get(collection, id)
        if doc is None:
            raise NotFoundError(missing_message)
        return model.from_doc(doc)

    async def _list(self, collection: str, model: type[D], **query) -> list[D]:
        docs = await self.storage.query(collection, **query)
        return [model.from_doc(doc) for doc in docs]
