"""
GraphQL schema.

Types mirror the stored entities and add the derived fields (``postsCount``,
``commentsCount``, ``author``) computed on read. Resolvers are thin: they
hand the caller's AuthContext to a service and convert the result.

Errors raised by services keep their ``code`` in ``errors[].extensions``.
"""

from __future__ import annotations

import logging
from typing import Optional

import strawberry
from graphql import GraphQLError
from strawberry.fastapi import BaseContext
from strawberry.types import ExecutionContext, Info

from postboard.auth.capabilities import Capability
from postboard.auth.context import AuthContext
from postboard.core.errors import AppError
from postboard.core.models import Comment, Post, User
from postboard.services import AuthResult, Services

logger = logging.getLogger(__name__)


# =============================================================================
# Context
# =============================================================================


class GraphQLContext(BaseContext):
    """Per-request context: who is calling, and the shared services."""

    def __init__(self, caller: AuthContext, services: Services):
        super().__init__()
        self.caller = caller
        self.services = services


# =============================================================================
# Types
# =============================================================================


@strawberry.type(name="User")
class UserType:
    id: strawberry.ID = strawberry.field(name="_id")
    username: str
    email: str
    token: Optional[strawberry.ID] = None
    bio: Optional[str] = None
    followers: int = 0
    following_users: list[str] = strawberry.field(default_factory=list)

    @strawberry.field
    async def posts_count(self, info: Info) -> int:
        return await info.context.services.users.posts_count(self.id)

    @classmethod
    def from_model(cls, user: User, token: str | None = None) -> UserType:
        return cls(
            id=strawberry.ID(user.id),
            username=user.username,
            email=user.email,
            token=token,
            bio=user.bio,
            followers=user.followers,
            following_users=list(user.following_users),
        )

    @classmethod
    def from_auth(cls, result: AuthResult) -> UserType:
        return cls.from_model(result.user, token=result.token)


async def _author(info: Info, author_id: str) -> Optional[UserType]:
    user = await info.context.services.users.get(author_id)
    return UserType.from_model(user) if user else None


@strawberry.type(name="Post")
class PostType:
    id: strawberry.ID = strawberry.field(name="_id")
    author_id: strawberry.ID
    title: str
    description: str
    likes: list[str]
    dislikes: list[str]
    likes_count: int

    @strawberry.field
    async def author(self, info: Info) -> Optional[UserType]:
        return await _author(info, self.author_id)

    @strawberry.field
    async def comments_count(self, info: Info) -> int:
        return await info.context.services.posts.comments_count(self.id)

    @classmethod
    def from_model(cls, post: Post) -> PostType:
        return cls(
            id=strawberry.ID(post.id),
            author_id=strawberry.ID(post.author_id),
            title=post.title,
            description=post.description,
            likes=list(post.likes),
            dislikes=list(post.dislikes),
            likes_count=post.likes_count,
        )


@strawberry.type(name="Comment")
class CommentType:
    id: strawberry.ID = strawberry.field(name="_id")
    author_id: strawberry.ID
    post_id: strawberry.ID
    description: str

    @strawberry.field
    async def author(self, info: Info) -> Optional[UserType]:
        return await _author(info, self.author_id)

    @classmethod
    def from_model(cls, comment: Comment) -> CommentType:
        return cls(
            id=strawberry.ID(comment.id),
            author_id=strawberry.ID(comment.author_id),
            post_id=strawberry.ID(comment.post_id),
            description=comment.description,
        )


@strawberry.type(name="CheckoutSession")
class CheckoutSessionType:
    session_id: str = strawberry.field(name="sessionID")


# =============================================================================
# Query
# =============================================================================


@strawberry.type
class Query:

    @strawberry.field
    def hello_world(self, info: Info) -> Optional[str]:
        info.context.caller.require(Capability.PROBE)
        logger.info("Authenticated user accessed helloWorld query")
        return "hello World"

    @strawberry.field
    async def me(self, info: Info) -> Optional[UserType]:
        user = await info.context.services.users.me(info.context.caller)
        return UserType.from_model(user) if user else None

    @strawberry.field
    async def get_all_users(self, info: Info) -> list[UserType]:
        users = await info.context.services.users.get_all()
        return [UserType.from_model(u) for u in users]

    @strawberry.field
    async def get_user(self, info: Info, user_id: strawberry.ID) -> Optional[UserType]:
        user = await info.context.services.users.get(user_id)
        return UserType.from_model(user) if user else None

    @strawberry.field
    async def get_random_users(self, info: Info) -> list[UserType]:
        users = await info.context.services.users.get_random()
        return [UserType.from_model(u) for u in users]

    @strawberry.field
    async def get_all_posts(self, info: Info) -> list[PostType]:
        posts = await info.context.services.posts.get_all()
        return [PostType.from_model(p) for p in posts]

    @strawberry.field
    async def get_all_trending_posts(self, info: Info) -> list[PostType]:
        posts = await info.context.services.posts.get_trending()
        return [PostType.from_model(p) for p in posts]

    @strawberry.field
    async def get_post(self, info: Info, post_id: strawberry.ID) -> Optional[PostType]:
        post = await info.context.services.posts.get(post_id)
        return PostType.from_model(post) if post else None

    @strawberry.field
    async def get_post_by_search(self, info: Info, search_query: str) -> list[PostType]:
        posts = await info.context.services.posts.search(search_query)
        return [PostType.from_model(p) for p in posts]

    @strawberry.field
    async def get_posts_by_user(self, info: Info, user_id: strawberry.ID) -> list[PostType]:
        posts = await info.context.services.posts.get_by_user(user_id)
        return [PostType.from_model(p) for p in posts]

    @strawberry.field
    async def get_comments(self, info: Info, post_id: strawberry.ID) -> list[CommentType]:
        comments = await info.context.services.comments.get_for_post(post_id)
        return [CommentType.from_model(c) for c in comments]


# =============================================================================
# Mutation
# =============================================================================


@strawberry.type
class Mutation:

    # --- Accounts ---

    @strawberry.mutation
    async def register_user(self, info: Info, username: str, email: str, password: str) -> UserType:
        result = await info.context.services.users.register(username, email, password)
        return UserType.from_auth(result)

    @strawberry.mutation
    async def login(self, info: Info, email: str, password: str) -> UserType:
        result = await info.context.services.users.login(email, password)
        return UserType.from_auth(result)

    @strawberry.mutation
    async def google_login(self, info: Info, username: str, email: str) -> UserType:
        result = await info.context.services.users.google_login(info.context.caller, username, email)
        return UserType.from_auth(result)

    @strawberry.mutation
    async def update_profile(
        self,
        info: Info,
        username: Optional[str] = None,
        bio: Optional[str] = None,
    ) -> UserType:
        user = await info.context.services.users.update_profile(info.context.caller, username, bio)
        return UserType.from_model(user)

    @strawberry.mutation
    async def follow_user(self, info: Info, follow_user_id: strawberry.ID) -> UserType:
        user = await info.context.services.users.follow(info.context.caller, follow_user_id)
        return UserType.from_model(user)

    @strawberry.mutation
    async def unfollow_user(self, info: Info, unfollow_user_id: strawberry.ID) -> UserType:
        user = await info.context.services.users.unfollow(info.context.caller, unfollow_user_id)
        return UserType.from_model(user)

    # --- Posts ---

    @strawberry.mutation
    async def add_post(self, info: Info, title: str, description: str) -> PostType:
        post = await info.context.services.posts.add(info.context.caller, title, description)
        return PostType.from_model(post)

    @strawberry.mutation
    async def edit_post(
        self, info: Info, post_id: strawberry.ID, title: str, description: str
    ) -> PostType:
        post = await info.context.services.posts.edit(info.context.caller, post_id, title, description)
        return PostType.from_model(post)

    @strawberry.mutation
    async def delete_post(self, info: Info, post_id: strawberry.ID) -> PostType:
        post = await info.context.services.posts.delete(info.context.caller, post_id)
        return PostType.from_model(post)

    @strawberry.mutation
    async def like_post(self, info: Info, post_id: strawberry.ID) -> PostType:
        post = await info.context.services.posts.like(info.context.caller, post_id)
        return PostType.from_model(post)

    @strawberry.mutation
    async def dislike_post(self, info: Info, post_id: strawberry.ID) -> PostType:
        post = await info.context.services.posts.dislike(info.context.caller, post_id)
        return PostType.from_model(post)

    # --- Comments ---

    @strawberry.mutation
    async def add_comment(self, info: Info, post_id: strawberry.ID, description: str) -> CommentType:
        comment = await info.context.services.comments.add(info.context.caller, post_id, description)
        return CommentType.from_model(comment)

    @strawberry.mutation
    async def delete_comment(self, info: Info, comment_id: strawberry.ID) -> CommentType:
        comment = await info.context.services.comments.delete(info.context.caller, comment_id)
        return CommentType.from_model(comment)

    # --- Payments ---

    @strawberry.mutation
    async def create_checkout_session(self, info: Info, email: str) -> CheckoutSessionType:
        payment = await info.context.services.payments.create_checkout_session(info.context.caller, email)
        return CheckoutSessionType(session_id=payment.session_id)


# =============================================================================
# Schema
# =============================================================================


class PostboardSchema(strawberry.Schema):
    """Logs client errors briefly; everything else goes to the default error logger."""

    def process_errors(
        self,
        errors: list[GraphQLError],
        execution_context: Optional[ExecutionContext] = None,
    ) -> None:
        unexpected = []
        for error in errors:
            if isinstance(error.original_error, AppError):
                logger.info(f"{error.original_error.code}: {error.message}")
            else:
                unexpected.append(error)
        if unexpected:
            super().process_errors(unexpected, execution_context)


schema = PostboardSchema(query=Query, mutation=Mutation)
