"""
Authorization gate - turns a request credential into an AuthContext.

Policy:
- No Authorization header → anonymous context (protected operations are
  then refused by AuthContext.require).
- Header present but malformed, expired or not verifiable → the whole
  request is rejected with 401 before any resolver runs.

The credential is verified according to ``auth_mode``:
- "session": self-issued HS256 token (postboard.auth.jwt)
- "external": identity provider ID token (postboard.auth.identity); the
  local account is looked up by the verified email.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from postboard.auth.context import AuthContext
from postboard.auth.identity import GoogleIdentityVerifier
from postboard.auth.jwt import TokenIssuer
from postboard.config import Settings
from postboard.core.errors import AppError, AuthenticationError, DependencyError
from postboard.integrations.sentry import set_user
from postboard.storage import Collections, DocumentStorage

logger = logging.getLogger(__name__)


def extract_bearer_token(auth_header: str | None) -> str | None:
    """
    Return the bearer credential, or None when no header was sent.

    Raises AuthenticationError for a header that is not "Bearer <token>".
    """
    if auth_header is None or not auth_header.strip():
        return None
    scheme, _, token = auth_header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Invalid Authorization header")
    return token.strip()


class CallerResolver:
    """Resolves the caller identity for one request."""

    def __init__(
        self,
        settings: Settings,
        storage: DocumentStorage,
        token_issuer: TokenIssuer,
        identity_verifier: GoogleIdentityVerifier,
    ):
        self.settings = settings
        self.storage = storage
        self.token_issuer = token_issuer
        self.identity_verifier = identity_verifier

    async def resolve(self, auth_header: str | None) -> AuthContext:
        token = extract_bearer_token(auth_header)
        if token is None:
            return AuthContext.anonymous()

        if self.settings.use_external_identity:
            return await self._resolve_external(token)

        claims = self.token_issuer.verify(token)
        return AuthContext(
            user_id=claims.user_id,
            user_email=claims.email,
            user_name=claims.name,
        )

    async def _resolve_external(self, token: str) -> AuthContext:
        identity = await self.identity_verifier.verify(token)
        if not identity.email_verified:
            raise AuthenticationError("Email not verified")

        account = await self.storage.find_one(Collections.USERS, {"email": identity.email})
        if account is None:
            logger.info(f"Verified identity {identity.email} has no account yet")
            return AuthContext(
                user_email=identity.email,
                user_name=identity.name,
                identity_subject=identity.subject,
            )
        return AuthContext(
            user_id=account["_id"],
            user_email=identity.email,
            user_name=account.get("username") or identity.name,
            identity_subject=identity.subject,
        )


def _http_error(status_code: int, error: AppError) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
    )


async def get_caller(request: Request) -> AuthContext:
    """
    FastAPI dependency resolving the AuthContext for a request.

    Expects ``request.app.state.caller_resolver`` to be set at startup.
    """
    resolver: CallerResolver = request.app.state.caller_resolver
    try:
        ctx = await resolver.resolve(request.headers.get("authorization"))
    except AuthenticationError as e:
        logger.warning(f"Rejected credential: {e.message}")
        raise _http_error(401, e)
    except DependencyError as e:
        raise _http_error(503, e)

    if ctx.is_authenticated:
        set_user(ctx.user_id, ctx.user_email)
    return ctx
