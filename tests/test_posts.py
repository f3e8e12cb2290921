"""
Tests for posts and their vote state.

Core rule: a voter is in at most one of likes/dislikes, and likes_count
never goes below zero.
"""

import asyncio

import pytest

from postboard.core.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from postboard.storage import Collections

from conftest import caller_for


# =============================================================================
# Create / Edit / Delete
# =============================================================================


class TestAddPost:
    @pytest.mark.asyncio
    async def test_add_post(self, services, register):
        alice, ctx = await register("alice")

        post = await services.posts.add(ctx, "  Hello  ", "First post")

        assert post.title == "Hello"
        assert post.author_id == alice.id
        assert post.likes == [] and post.dislikes == [] and post.likes_count == 0
        assert (await services.posts.get(post.id)).title == "Hello"

    @pytest.mark.asyncio
    async def test_anonymous_cannot_add(self, services, storage, anonymous):
        with pytest.raises(AuthenticationError) as exc_info:
            await services.posts.add(anonymous, "Hello", "First post")

        assert exc_info.value.message == (
            "You are not authorized to create this resource. Please authenticate."
        )
        assert exc_info.value.extensions == {"code": "UNAUTHENTICATED"}
        assert await storage.count(Collections.POSTS) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "title,description,message",
        [
            ("", "body", "Title is required"),
            ("Hello", "   ", "Description is required"),
            ("x" * 81, "body", "Title must be no more than 80 characters"),
            ("Hello", "x" * 801, "Description must be no more than 800 characters"),
        ],
    )
    async def test_validation(self, services, storage, register, title, description, message):
        _, ctx = await register("alice")

        with pytest.raises(ValidationError, match=message):
            await services.posts.add(ctx, title, description)

        assert await storage.count(Collections.POSTS) == 0

    @pytest.mark.asyncio
    async def test_limits_are_inclusive(self, services, register):
        _, ctx = await register("alice")
        post = await services.posts.add(ctx, "x" * 80, "y" * 800)
        assert len(post.title) == 80

    @pytest.mark.asyncio
    async def test_duplicate_title(self, services, storage, register):
        _, a_ctx = await register("alice")
        _, b_ctx = await register("bob")
        await services.posts.add(a_ctx, "Hello", "first")

        with pytest.raises(ValidationError, match="A post with this title already exists"):
            await services.posts.add(b_ctx, "Hello", "second")

        assert await storage.count(Collections.POSTS) == 1


class TestEditPost:
    @pytest.mark.asyncio
    async def test_owner_edits(self, services, register):
        _, ctx = await register("alice")
        post = await services.posts.add(ctx, "Hello", "first")

        edited = await services.posts.edit(ctx, post.id, "Hello again", "changed")

        assert edited.title == "Hello again"
        assert edited.description == "changed"
        assert edited.updated_at >= post.updated_at

    @pytest.mark.asyncio
    async def test_non_owner_refused(self, services, register):
        _, a_ctx = await register("alice")
        _, b_ctx = await register("bob")
        post = await services.posts.add(a_ctx, "Hello", "first")

        with pytest.raises(AuthorizationError, match="Only the owner can edit it"):
            await services.posts.edit(b_ctx, post.id, "Mine now", "changed")

    @pytest.mark.asyncio
    async def test_title_stays_unique(self, services, register):
        _, ctx = await register("alice")
        await services.posts.add(ctx, "Hello", "first")
        post = await services.posts.add(ctx, "World", "second")

        with pytest.raises(ValidationError, match="already exists"):
            await services.posts.edit(ctx, post.id, "Hello", "second")

        # Keeping its own title is fine
        await services.posts.edit(ctx, post.id, "World", "second, edited")

    @pytest.mark.asyncio
    async def test_missing_post(self, services, register):
        _, ctx = await register("alice")
        with pytest.raises(NotFoundError, match="Post does not exist"):
            await services.posts.edit(ctx, "post_missing", "Hello", "first")

    @pytest.mark.asyncio
    async def test_anonymous_refused(self, services, register, anonymous):
        _, ctx = await register("alice")
        post = await services.posts.add(ctx, "Hello", "first")

        with pytest.raises(AuthenticationError, match="edit this post. Please authenticate"):
            await services.posts.edit(anonymous, post.id, "Hello", "changed")


class TestDeletePost:
    @pytest.mark.asyncio
    async def test_owner_deletes(self, services, register):
        _, ctx = await register("alice")
        post = await services.posts.add(ctx, "Hello", "first")

        deleted = await services.posts.delete(ctx, post.id)

        assert deleted.id == post.id
        assert await services.posts.get(post.id) is None

    @pytest.mark.asyncio
    async def test_non_owner_refused(self, services, register):
        _, a_ctx = await register("alice")
        _, b_ctx = await register("bob")
        post = await services.posts.add(a_ctx, "Hello", "first")

        with pytest.raises(AuthorizationError) as exc_info:
            await services.posts.delete(b_ctx, post.id)

        assert exc_info.value.message == (
            "You are not authorized to delete this post. Only the owner can delete it."
        )
        assert exc_info.value.extensions == {"code": "FORBIDDEN"}
        assert await services.posts.get(post.id) is not None

    @pytest.mark.asyncio
    async def test_missing_post(self, services, register):
        _, ctx = await register("alice")
        with pytest.raises(NotFoundError, match="Post does not exist"):
            await services.posts.delete(ctx, "post_missing")

    @pytest.mark.asyncio
    async def test_anonymous_refused(self, services, register, anonymous):
        _, ctx = await register("alice")
        post = await services.posts.add(ctx, "Hello", "first")

        with pytest.raises(AuthenticationError, match="delete this post. Please authenticate"):
            await services.posts.delete(anonymous, post.id)
        assert await services.posts.get(post.id) is not None

    @pytest.mark.asyncio
    async def test_comments_are_kept(self, services, register):
        _, ctx = await register("alice")
        post = await services.posts.add(ctx, "Hello", "first")
        await services.comments.add(ctx, post.id, "nice")

        await services.posts.delete(ctx, post.id)

        assert len(await services.comments.get_for_post(post.id)) == 1


# =============================================================================
# Votes
# =============================================================================


class TestVotes:
    @pytest.mark.asyncio
    async def test_like_then_dislike(self, services, register):
        _, a_ctx = await register("alice")
        b, b_ctx = await register("bob")
        post = await services.posts.add(a_ctx, "Hello", "first")

        post = await services.posts.like(b_ctx, post.id)
        assert post.likes_count == 1
        assert b.id in post.likes
        assert b.id not in post.dislikes

        post = await services.posts.dislike(b_ctx, post.id)
        assert post.likes_count == 0
        assert b.id in post.dislikes
        assert b.id not in post.likes

    @pytest.mark.asyncio
    async def test_like_is_idempotent(self, services, register):
        _, a_ctx = await register("alice")
        b, b_ctx = await register("bob")
        post = await services.posts.add(a_ctx, "Hello", "first")

        await services.posts.like(b_ctx, post.id)
        post = await services.posts.like(b_ctx, post.id)

        assert post.likes == [b.id]
        assert post.likes_count == 1

    @pytest.mark.asyncio
    async def test_dislike_is_idempotent(self, services, register):
        _, a_ctx = await register("alice")
        _, b_ctx = await register("bob")
        _, c_ctx = await register("carol")
        post = await services.posts.add(a_ctx, "Hello", "first")
        await services.posts.like(c_ctx, post.id)
        await services.posts.like(b_ctx, post.id)

        await services.posts.dislike(b_ctx, post.id)
        post = await services.posts.dislike(b_ctx, post.id)

        assert post.likes_count == 1

    @pytest.mark.asyncio
    async def test_dislike_without_like_keeps_count(self, services, register):
        _, a_ctx = await register("alice")
        b, b_ctx = await register("bob")
        post = await services.posts.add(a_ctx, "Hello", "first")

        post = await services.posts.dislike(b_ctx, post.id)

        assert post.likes_count == 0
        assert post.dislikes == [b.id]

    @pytest.mark.asyncio
    async def test_likes_count_floors_at_zero(self, services, storage, register):
        _, a_ctx = await register("alice")
        b, b_ctx = await register("bob")
        post = await services.posts.add(a_ctx, "Hello", "first")
        await storage.modify(Collections.POSTS, post.id, add_to_set={"likes": b.id})

        post = await services.posts.dislike(b_ctx, post.id)

        assert post.likes_count == 0
        assert b.id not in post.likes

    @pytest.mark.asyncio
    async def test_anonymous_cannot_vote(self, services, register, anonymous):
        _, a_ctx = await register("alice")
        post = await services.posts.add(a_ctx, "Hello", "first")

        with pytest.raises(AuthenticationError, match="like this post"):
            await services.posts.like(anonymous, post.id)
        with pytest.raises(AuthenticationError, match="dislike this post"):
            await services.posts.dislike(anonymous, post.id)

    @pytest.mark.asyncio
    async def test_vote_on_missing_post(self, services, register):
        _, ctx = await register("alice")
        with pytest.raises(NotFoundError):
            await services.posts.like(ctx, "post_missing")


class TestConcurrentVotes:
    @pytest.mark.asyncio
    async def test_concurrent_likes_count_once(self, yielding_services):
        users, posts = yielding_services.users, yielding_services.posts
        a = (await users.register("alice", "alice@example.com", "secret123")).user
        b = (await users.register("bob", "bob@example.com", "secret123")).user
        post = await posts.add(caller_for(a), "Hello", "first")

        await asyncio.gather(posts.like(caller_for(b), post.id), posts.like(caller_for(b), post.id))

        post = await posts.get(post.id)
        assert post.likes == [b.id]
        assert post.likes_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_dislikes_decrement_once(self, yielding_services):
        users, posts = yielding_services.users, yielding_services.posts
        a = (await users.register("alice", "alice@example.com", "secret123")).user
        b = (await users.register("bob", "bob@example.com", "secret123")).user
        post = await posts.add(caller_for(a), "Hello", "first")
        await posts.like(caller_for(a), post.id)
        await posts.like(caller_for(b), post.id)

        await asyncio.gather(posts.dislike(caller_for(b), post.id), posts.dislike(caller_for(b), post.id))

        post = await posts.get(post.id)
        assert post.likes == [a.id]
        assert post.dislikes == [b.id]
        assert post.likes_count == 1


# =============================================================================
# Listings
# =============================================================================


class TestListings:
    @pytest.mark.asyncio
    async def test_trending_order(self, services, register):
        _, a_ctx = await register("alice")
        _, b_ctx = await register("bob")
        _, c_ctx = await register("carol")
        quiet = await services.posts.add(a_ctx, "Quiet", "no likes")
        popular = await services.posts.add(a_ctx, "Popular", "two likes")
        mild = await services.posts.add(a_ctx, "Mild", "one like")
        await services.posts.like(b_ctx, popular.id)
        await services.posts.like(c_ctx, popular.id)
        await services.posts.like(b_ctx, mild.id)

        trending = await services.posts.get_trending()

        assert [p.id for p in trending] == [popular.id, mild.id, quiet.id]

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive_substring(self, services, register):
        _, ctx = await register("alice")
        await services.posts.add(ctx, "Hello World", "a")
        await services.posts.add(ctx, "Say hello", "b")
        await services.posts.add(ctx, "Goodbye", "c")

        found = await services.posts.search("HELLO")

        assert sorted(p.title for p in found) == ["Hello World", "Say hello"]

    @pytest.mark.asyncio
    async def test_search_accepts_patterns(self, services, register):
        _, ctx = await register("alice")
        await services.posts.add(ctx, "Hello World", "a")
        await services.posts.add(ctx, "Say hello", "b")

        found = await services.posts.search("^hello")

        assert [p.title for p in found] == ["Hello World"]

    @pytest.mark.asyncio
    async def test_invalid_search_pattern(self, services):
        with pytest.raises(ValidationError, match="Invalid search query"):
            await services.posts.search("(unclosed")

    @pytest.mark.asyncio
    async def test_posts_by_user(self, services, register):
        alice, a_ctx = await register("alice")
        _, b_ctx = await register("bob")
        await services.posts.add(a_ctx, "Mine", "a")
        await services.posts.add(b_ctx, "Theirs", "b")

        posts = await services.posts.get_by_user(alice.id)

        assert [p.title for p in posts] == ["Mine"]

    @pytest.mark.asyncio
    async def test_get_missing_post(self, services):
        assert await services.posts.get("post_missing") is None
