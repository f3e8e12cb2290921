"""
Post Service.

Posts, trending and search listings, and the like/dislike vote state.

A voter is in at most one of ``likes`` / ``dislikes``. Votes are
idempotent: repeating a like or a dislike leaves the post unchanged.
"""

from __future__ import annotations

import logging
import re

from postboard.auth.capabilities import Capability
from postboard.auth.context import AuthContext
from postboard.core.errors import NotFoundError, ValidationError, reports_errors
from postboard.core.models import MAX_DESCRIPTION_LEN, MAX_TITLE_LEN, Post
from postboard.core.utils import utc_now
from postboard.services.base import Service
from postboard.storage import DESCENDING, Collections, UniqueConstraintError

logger = logging.getLogger(__name__)

POST_MISSING_MESSAGE = "Post does not exist"
DUPLICATE_TITLE_MESSAGE = "A post with this title already exists"


class PostService(Service):
    """Posts and their votes."""

    # =========================================================================
    # Queries
    # =========================================================================

    @reports_errors("fetching all posts")
    async def get_all(self) -> list[Post]:
        logger.info("Fetching all posts")
        return await self._list(Collections.POSTS, Post)

    @reports_errors("fetching trending posts")
    async def get_trending(self) -> list[Post]:
        """All posts, most liked first."""
        logger.info("Fetching trending posts")
        return await self._list(Collections.POSTS, Post, sort=[("likes_count", DESCENDING)])

    @reports_errors("fetching the post")
    async def get(self, post_id: str) -> Post | None:
        logger.info(f"Fetching post with ID: {post_id}")
        return Post.from_doc(await self.storage.get(Collections.POSTS, post_id))

    @reports_errors("searching posts")
    async def search(self, search_query: str) -> list[Post]:
        """Posts whose title matches ``search_query`` (case-insensitive regex)."""
        logger.info(f"Searching posts with query: {search_query}")
        try:
            re.compile(search_query or "")
        except re.error:
            raise ValidationError("Invalid search query")
        docs = await self.storage.search(Collections.POSTS, "title", search_query or "")
        return [Post.from_doc(doc) for doc in docs]

    @reports_errors("fetching the user's posts")
    async def get_by_user(self, user_id: str) -> list[Post]:
        logger.info(f"Fetching posts by user: {user_id}")
        return await self._list(Collections.POSTS, Post, filters={"author_id": user_id})

    @reports_errors("fetching the comments count")
    async def comments_count(self, post_id: str) -> int:
        return await self.storage.count(Collections.COMMENTS, {"post_id": post_id})

    # =========================================================================
    # Mutations
    # =========================================================================

    @reports_errors("adding the post")
    async def add(self, ctx: AuthContext, title: str, description: str) -> Post:
        ctx.require(Capability.POST_CREATE)
        title, description = self._validate(title, description)
        logger.info(f"Adding post by user: {ctx.user_id}")

        if await self.storage.find_one(Collections.POSTS, {"title": title}):
            raise ValidationError(DUPLICATE_TITLE_MESSAGE)

        post = Post(author_id=ctx.user_id, title=title, description=description)
        try:
            await self.storage.save(Collections.POSTS, post.id, post.to_doc())
        except UniqueConstraintError:
            raise ValidationError(DUPLICATE_TITLE_MESSAGE)

        logger.info(f"Post added successfully: {post.id}")
        return post

    @reports_errors("editing the post")
    async def edit(self, ctx: AuthContext, post_id: str, title: str, description: str) -> Post:
        ctx.require_authenticated(Capability.POST_EDIT)
        post = await self._load(Collections.POSTS, Post, post_id, POST_MISSING_MESSAGE)
        ctx.require(Capability.POST_EDIT, owner_id=post.author_id)
        title, description = self._validate(title, description)
        logger.info(f"Editing post: {post_id}")

        if title != post.title:
            other = await self.storage.find_one(Collections.POSTS, {"title": title})
            if other is not None and other["_id"] != post_id:
                raise ValidationError(DUPLICATE_TITLE_MESSAGE)

        try:
            doc = await self.storage.modify(
                Collections.POSTS,
                post_id,
                set_fields={"title": title, "description": description, "updated_at": utc_now()},
            )
        except UniqueConstraintError:
            raise ValidationError(DUPLICATE_TITLE_MESSAGE)
        if doc is None:
            raise NotFoundError(POST_MISSING_MESSAGE)

        logger.info(f"Post edited successfully: {post_id}")
        return Post.from_doc(doc)

    @reports_errors("deleting the post")
    async def delete(self, ctx: AuthContext, post_id: str) -> Post:
        """Delete a post and return it. Its comments are left in place."""
        ctx.require_authenticated(Capability.POST_DELETE)
        post = await self._load(Collections.POSTS, Post, post_id, POST_MISSING_MESSAGE)
        ctx.require(Capability.POST_DELETE, owner_id=post.author_id)

        logger.info(f"Deleting post: {post_id}")
        await self.storage.delete(Collections.POSTS, post_id)
        return post

    @reports_errors("liking the post")
    async def like(self, ctx: AuthContext, post_id: str) -> Post:
        ctx.require(Capability.POST_LIKE)
        voter = ctx.user_id
        logger.info(f"User: {voter} liking post: {post_id}")

        doc = await self.storage.modify(
            Collections.POSTS,
            post_id,
            set_fields={"updated_at": utc_now()},
            add_to_set={"likes": voter},
            pull={"dislikes": voter},
            inc={"likes_count": 1},
            where={"likes": {"$ne": voter}},
        )
        if doc is None:
            # Already liked, or the post is gone
            return await self._load(Collections.POSTS, Post, post_id, POST_MISSING_MESSAGE)
        return Post.from_doc(doc)

    @reports_errors("disliking the post")
    async def dislike(self, ctx: AuthContext, post_id: str) -> Post:
        """
        Move the caller's vote to ``dislikes``.

        ``likes_count`` drops by one only when the caller was a liker and
        the count is still positive. Each vote state has its own conditional
        update.
        """
        ctx.require(Capability.POST_DISLIKE)
        voter = ctx.user_id
        logger.info(f"User: {voter} disliking post: {post_id}")

        attempts = (
            ({"likes": voter, "likes_count": {"$gt": 0}}, {"likes_count": -1}),
            ({"likes": voter, "likes_count": {"$lt": 1}}, None),
            ({"likes": {"$ne": voter}, "dislikes": {"$ne": voter}}, None),
        )
        for where, inc in attempts:
            doc = await self.storage.modify(
                Collections.POSTS,
                post_id,
                set_fields={"updated_at": utc_now()},
                add_to_set={"dislikes": voter},
                pull={"likes": voter},
                inc=inc,
                where=where,
            )
            if doc is not None:
                return Post.from_doc(doc)

        # Already disliked, or the post is gone
        return await self._load(Collections.POSTS, Post, post_id, POST_MISSING_MESSAGE)

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _validate(title: str | None, description: str | None) -> tuple[str, str]:
        title = (title or "").strip()
        description = (description or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if not description:
            raise ValidationError("Description is required")
        if len(title) > MAX_TITLE_LEN:
            raise ValidationError(f"Title must be no more than {MAX_TITLE_LEN} characters")
        if len(description) > MAX_DESCRIPTION_LEN:
            raise ValidationError(f"Description must be no more than {MAX_DESCRIPTION_LEN} characters")
        return title, description
