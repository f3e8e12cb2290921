"""Comment Service."""

from __future__ import annotations

import logging

from postboard.auth.capabilities import Capability
from postboard.auth.context import AuthContext
from postboard.core.errors import ValidationError, reports_errors
from postboard.core.models import MAX_COMMENT_LEN, Comment, Post
from postboard.services.base import Service
from postboard.storage import Collections

logger = logging.getLogger(__name__)


class CommentService(Service):
    """Comments on posts."""

    @reports_errors("fetching the comments")
    async def get_for_post(self, post_id: str) -> list[Comment]:
        logger.info(f"Fetching comments for post: {post_id}")
        return await self._list(Collections.COMMENTS, Comment, filters={"post_id": post_id})

    @reports_errors("adding the comment")
    async def add(self, ctx: AuthContext, post_id: str, description: str) -> Comment:
        ctx.require(Capability.COMMENT_CREATE)

        description = (description or "").strip()
        if not description:
            raise ValidationError("Description is required")
        if len(description) > MAX_COMMENT_LEN:
            raise ValidationError(f"Comment must be no more than {MAX_COMMENT_LEN} characters")

        await self._load(Collections.POSTS, Post, post_id, "Post does not exist")

        comment = Comment(author_id=ctx.user_id, post_id=post_id, description=description)
        await self.storage.save(Collections.COMMENTS, comment.id, comment.to_doc())
        logger.info(f"Comment added successfully: {comment.id} on post {post_id}")
        return comment

    @reports_errors("deleting the comment")
    async def delete(self, ctx: AuthContext, comment_id: str) -> Comment:
        ctx.require_authenticated(Capability.COMMENT_DELETE)
        comment = await self._load(Collections.COMMENTS, Comment, comment_id, "Comment does not exist")
        ctx.require(Capability.COMMENT_DELETE, owner_id=comment.author_id)

        logger.info(f"Deleting comment: {comment_id}")
        await self.storage.delete(Collections.COMMENTS, comment_id)
        return comment
