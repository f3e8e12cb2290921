"""
Auth context - the "who can do what" for each request.

This is the lightweight object handed to every resolver.
It contains everything needed to make authorization decisions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from postboard.auth.capabilities import (
    Capability,
    Relation,
    denial_message,
    get_capabilities,
)
from postboard.core.errors import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

UNLINKED_IDENTITY_MESSAGE = "No account is linked to this identity. Please sign in first."


@dataclass
class AuthContext:
    """
    Authorization context for a request.

    Usage in services:
        async def delete_post(self, ctx: AuthContext, post_id: str):
            post = await self._get_post(post_id)
            ctx.require(Capability.POST_DELETE, owner_id=post.author_id)
    """

    # Local account (None when anonymous)
    user_id: str | None = None
    user_email: str | None = None
    user_name: str | None = None

    # Subject of a verified external identity (external auth mode only)
    identity_subject: str | None = None

    @property
    def is_authenticated(self) -> bool:
        """Is there a caller with a local account?"""
        return self.user_id is not None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @property
    def has_external_identity(self) -> bool:
        return self.identity_subject is not None

    def relation_to(self, owner_id: str | None = None) -> Relation:
        """How this caller relates to an entity owned by ``owner_id``."""
        if self.is_anonymous:
            return Relation.ANONYMOUS
        if owner_id is not None and str(owner_id) == str(self.user_id):
            return Relation.OWNER
        return Relation.MEMBER

    def can(self, capability: Capability | str, owner_id: str | None = None) -> bool:
        """
        Check if the caller has a capability, optionally on an owned entity.

        Usage:
            if ctx.can("post.delete", owner_id=post.author_id):
                ...
        """
        if isinstance(capability, str):
            try:
                capability = Capability(capability)
            except ValueError:
                return False
        return capability in get_capabilities(self.relation_to(owner_id))

    def require(self, capability: Capability | str, owner_id: str | None = None) -> None:
        """
        Raise if the caller doesn't have the capability.

        AuthenticationError when there is no caller, AuthorizationError when
        the caller is known but is not the owner.
        """
        if self.can(capability, owner_id):
            return

        capability = Capability(capability)
        relation = self.relation_to(owner_id)
        if relation == Relation.ANONYMOUS:
            logger.warning(f"Anonymous caller refused {capability.value}")
            if self.has_external_identity:
                raise AuthenticationError(UNLINKED_IDENTITY_MESSAGE)
            raise AuthenticationError(denial_message(capability, relation))

        logger.warning(f"User {self.user_id} refused {capability.value} (not the owner)")
        raise AuthorizationError(denial_message(capability, relation))

    def require_authenticated(self, capability: Capability | str) -> None:
        """
        Raise AuthenticationError if there is no caller.

        Used before an owned entity is loaded. Ownership is checked
        afterwards with ``require(capability, owner_id=...)``.
        """
        if self.is_authenticated:
            return

        capability = Capability(capability)
        logger.warning(f"Anonymous caller refused {capability.value}")
        if self.has_external_identity:
            raise AuthenticationError(UNLINKED_IDENTITY_MESSAGE)
        raise AuthenticationError(denial_message(capability, Relation.ANONYMOUS))

    @classmethod
    def anonymous(cls) -> AuthContext:
        """Create an anonymous context (no caller)."""
        return cls()
