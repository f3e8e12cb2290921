# =============================================================================
# External Identity Verification (Google ID tokens)
# =============================================================================
#
# Setup:
#   1. Create an OAuth 2.0 Client ID at
#      https://console.cloud.google.com/apis/credentials
#   2. Set env vars:
#      - AUTH_MODE=external
#      - GOOGLE_OAUTH_CLIENT_ID=...
#
# The frontend signs the user in with Google and sends the ID token as
# "Authorization: Bearer <id_token>". We verify it against Google's
# published signing keys (JWKS).
#
# =============================================================================

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
import jwt
from pydantic import BaseModel

from postboard.config import Settings, get_settings
from postboard.core.errors import AuthenticationError, DependencyError
from postboard.core.utils import normalize_email

logger = logging.getLogger(__name__)


class ExternalIdentity(BaseModel):
    """Identity decoded from a verified provider credential."""
    subject: str
    email: str
    name: str
    email_verified: bool = True


class GoogleIdentityVerifier:
    """Verifies Google-issued ID tokens."""

    ISSUERS = ("accounts.google.com", "https://accounts.google.com")

    def __init__(self, settings: Settings | None = None, http_client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self._http_client = http_client
        self._jwks: dict[str, Any] | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.google_oauth_client_id)

    async def _fetch_jwks(self) -> dict[str, Any]:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(self.settings.google_jwks_url)
            else:
                async with httpx.AsyncClient(timeout=10) as client:
                    response = await client.get(self.settings.google_jwks_url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error(f"Fetching identity provider keys failed: {e}")
            raise DependencyError("Error verifying token")

    async def _signing_key(self, kid: str) -> dict[str, Any]:
        if self._jwks is None:
            self._jwks = await self._fetch_jwks()

        for key in self._jwks.get("keys", []):
            if key.get("kid") == kid:
                return key

        # Keys rotate; refresh once before giving up
        self._jwks = await self._fetch_jwks()
        for key in self._jwks.get("keys", []):
            if key.get("kid") == kid:
                return key
        raise AuthenticationError("Invalid Token")

    async def verify(self, token: str) -> ExternalIdentity:
        """
        Verify an ID token and return the identity it carries.

        Raises:
            AuthenticationError: token is malformed, expired, not ours, or
                carries an unverified email
            DependencyError: the provider's keys could not be fetched
        """
        if not self.is_configured:
            raise DependencyError("External identity provider is not configured")

        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError:
            raise AuthenticationError("Invalid Token")

        key = await self._signing_key(header.get("kid", ""))
        public_key = jwt.algorithms.RSAAlgorithm.from_jwk(json.dumps(key))

        try:
            payload = jwt.decode(
                token,
                public_key,
                algorithms=["RS256"],
                audience=self.settings.google_oauth_client_id,
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token expired")
        except jwt.PyJWTError as e:
            logger.info(f"Rejected identity token: {e}")
            raise AuthenticationError("Invalid Token")

        if payload.get("iss") not in self.ISSUERS:
            raise AuthenticationError("Invalid Token")

        email = normalize_email(payload.get("email", ""))
        if not payload.get("sub") or not email:
            raise AuthenticationError("Token missing subject")

        # Google sends the flag as a bool or as the string "true"
        if payload.get("email_verified") not in (True, "true"):
            logger.info(f"Rejected identity token for unverified email {email}")
            raise AuthenticationError("Email not verified")

        return ExternalIdentity(
            subject=str(payload["sub"]),
            email=email,
            name=payload.get("name") or email.split("@")[0],
            email_verified=True,
        )
