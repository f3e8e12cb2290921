"""
Capabilities and caller relations.

This defines WHAT callers can do, not HOW we check it.
The actual checking happens in AuthContext.require().
"""

from enum import Enum


class Relation(str, Enum):
    """How the caller relates to the entity an operation targets."""

    ANONYMOUS = "anonymous"  # No authenticated caller
    MEMBER = "member"        # Authenticated, not the entity's author
    OWNER = "owner"          # Authenticated author of the entity


class Capability(str, Enum):
    """
    Fine-grained capabilities.

    These are the permissions checked at the top of every protected
    operation. A caller's capabilities are derived from their relation to
    the target entity.
    """

    # Liveness probe for authenticated callers
    PROBE = "probe"

    # Account
    PROFILE_EDIT = "profile.edit"
    USER_FOLLOW = "user.follow"
    USER_UNFOLLOW = "user.unfollow"

    # Posts
    POST_CREATE = "post.create"
    POST_EDIT = "post.edit"
    POST_DELETE = "post.delete"
    POST_LIKE = "post.like"
    POST_DISLIKE = "post.dislike"

    # Comments
    COMMENT_CREATE = "comment.create"
    COMMENT_DELETE = "comment.delete"

    # Payments
    CHECKOUT_CREATE = "checkout.create"


# =============================================================================
# Capability Mappings
# =============================================================================


MEMBER_CAPABILITIES: set[Capability] = {
    Capability.PROBE,
    Capability.PROFILE_EDIT,
    Capability.USER_FOLLOW,
    Capability.USER_UNFOLLOW,
    Capability.POST_CREATE,
    Capability.POST_LIKE,
    Capability.POST_DISLIKE,
    Capability.COMMENT_CREATE,
    Capability.CHECKOUT_CREATE,
}

# Only the author of the target entity gets these
OWNER_ONLY: set[Capability] = {
    Capability.POST_EDIT,
    Capability.POST_DELETE,
    Capability.COMMENT_DELETE,
}

RELATION_CAPABILITIES: dict[Relation, set[Capability]] = {
    Relation.ANONYMOUS: set(),
    Relation.MEMBER: MEMBER_CAPABILITIES,
    Relation.OWNER: MEMBER_CAPABILITIES | OWNER_ONLY,
}


# What the caller was trying to do, as used in refusal messages
ACTIONS: dict[Capability, str] = {
    Capability.PROBE: "access this resource",
    Capability.PROFILE_EDIT: "update this profile",
    Capability.USER_FOLLOW: "perform this action",
    Capability.USER_UNFOLLOW: "perform this action",
    Capability.POST_CREATE: "create this resource",
    Capability.POST_EDIT: "edit this post",
    Capability.POST_DELETE: "delete this post",
    Capability.POST_LIKE: "like this post",
    Capability.POST_DISLIKE: "dislike this post",
    Capability.COMMENT_CREATE: "create this resource",
    Capability.COMMENT_DELETE: "delete this comment",
    Capability.CHECKOUT_CREATE: "perform this action",
}

OWNER_VERBS: dict[Capability, str] = {
    Capability.POST_EDIT: "edit",
    Capability.POST_DELETE: "delete",
    Capability.COMMENT_DELETE: "delete",
}


def get_capabilities(relation: Relation) -> set[Capability]:
    """Get all capabilities granted by a relation."""
    return set(RELATION_CAPABILITIES.get(relation, set()))


def denial_message(capability: Capability, relation: Relation) -> str:
    """Human-readable refusal for a capability the caller lacks."""
    action = ACTIONS.get(capability, "perform this action")
    if relation == Relation.ANONYMOUS:
        return f"You are not authorized to {action}. Please authenticate."
    verb = OWNER_VERBS.get(capability, "do")
    return f"You are not authorized to {action}. Only the owner can {verb} it."
