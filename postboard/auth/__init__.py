"""
Authentication and authorization.

Design principles:
1. One gate per request resolves the caller (postboard.auth.policies)
2. One guard per operation checks a capability (AuthContext.require)
3. Ownership is a relation, not a role: the author of an entity is its owner
"""

from postboard.auth.capabilities import (
    Capability,
    Relation,
    denial_message,
    get_capabilities,
)
from postboard.auth.context import AuthContext
from postboard.auth.identity import ExternalIdentity, GoogleIdentityVerifier
from postboard.auth.jwt import (
    SessionClaims,
    TokenExpiredError,
    TokenInvalidError,
    TokenIssuer,
    hash_password,
    verify_password,
)
from postboard.auth.policies import CallerResolver, extract_bearer_token, get_caller

__all__ = [
    # Main interface
    "AuthContext",
    "CallerResolver",
    "get_caller",
    "extract_bearer_token",
    # Types
    "Capability",
    "Relation",
    "denial_message",
    "get_capabilities",
    # Tokens
    "SessionClaims",
    "TokenIssuer",
    "TokenExpiredError",
    "TokenInvalidError",
    "hash_password",
    "verify_password",
    # External identity
    "ExternalIdentity",
    "GoogleIdentityVerifier",
]
