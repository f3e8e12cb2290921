"""
Core data models for the postboard backend.

These models represent the stored entities: Users, Posts, Comments and
Payments. Documents are keyed by a generated string id stored as ``_id``;
references between them are raw ids with no referential integrity.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from postboard.core.utils import generate_id, utc_now


# =============================================================================
# Limits
# =============================================================================


MAX_TITLE_LEN = 80
MAX_DESCRIPTION_LEN = 800
MAX_COMMENT_LEN = 500
MAX_USERNAME_LEN = 40
MAX_BIO_LEN = 280
RANDOM_USERS_SAMPLE_SIZE = 5


# =============================================================================
# Enums
# =============================================================================


class AuthProvider(str, Enum):
    """How an account was created."""

    PASSWORD = "password"  # registerUser
    GOOGLE = "google"      # googleLogin, no password stored


# =============================================================================
# Base
# =============================================================================


D = TypeVar("D", bound="Document")


class Document(BaseModel):
    """A record in one of the store collections."""

    model_config = ConfigDict(use_enum_values=True)

    id: str

    @classmethod
    def from_doc(cls: type[D], doc: dict[str, Any] | None) -> D | None:
        """Build a model from a raw store document (``_id`` -> ``id``)."""
        if doc is None:
            return None
        return cls.model_validate({**doc, "id": doc["_id"]})

    def to_doc(self) -> dict[str, Any]:
        """Raw store document without the id (the store keeps it as ``_id``)."""
        return self.model_dump(exclude={"id"})


# =============================================================================
# Entities
# =============================================================================


class User(Document):
    """
    A registered account.

    Accounts created through the external identity provider have no
    password hash and can only sign in through that provider.
    """

    id: str = Field(default_factory=lambda: generate_id("user"))

    username: str
    email: str
    password_hash: str | None = None
    auth_provider: AuthProvider = AuthProvider.PASSWORD
    bio: str | None = None

    # Social graph
    followers: int = 0
    following_users: list[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utc_now)

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)


class Post(Document):
    """
    A post with its vote state.

    ``likes`` and ``dislikes`` are voter sets stored as lists; a voter is
    in at most one of them. ``likes_count`` is kept next to ``likes``.
    """

    id: str = Field(default_factory=lambda: generate_id("post"))

    author_id: str
    title: str
    description: str

    likes: list[str] = Field(default_factory=list)
    dislikes: list[str] = Field(default_factory=list)
    likes_count: int = 0

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Comment(Document):
    """A comment on a post."""

    id: str = Field(default_factory=lambda: generate_id("cmt"))

    author_id: str
    post_id: str
    description: str

    created_at: datetime = Field(default_factory=utc_now)


class Payment(Document):
    """A checkout session opened by a user. Completion is not tracked."""

    id: str = Field(default_factory=lambda: generate_id("pay"))

    user_id: str
    amount: int  # minor units
    currency: str
    session_id: str

    created_at: datetime = Field(default_factory=utc_now)
