# =============================================================================
# Session Tokens & Password Hashing
# =============================================================================
#
# This module provides the self-issued credential used by password login:
#   - Password hashing (bcrypt)
#   - Token creation (HS256, configured expiry)
#   - Token validation
#
# Token layout: {"data": {"email", "name", "_id"}, "iat", "exp"}
#
# =============================================================================

from __future__ import annotations

import logging
from datetime import timedelta

import bcrypt
import jwt
from pydantic import BaseModel

from postboard.config import Settings, get_settings
from postboard.core.errors import AuthenticationError
from postboard.core.models import User
from postboard.core.utils import utc_now

logger = logging.getLogger(__name__)

# bcrypt ignores everything past this many bytes
MAX_PASSWORD_BYTES = 72


# =============================================================================
# Models
# =============================================================================


class SessionClaims(BaseModel):
    """Identity embedded in a session token."""
    user_id: str
    email: str
    name: str


# =============================================================================
# Password Hashing
# =============================================================================


def hash_password(password: str, rounds: int = 10) -> str:
    """Hash a password with bcrypt at the given cost factor."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except (ValueError, AttributeError):
        return False


# =============================================================================
# Token Errors
# =============================================================================


class TokenError(AuthenticationError):
    """Base exception for token errors."""
    pass


class TokenExpiredError(TokenError):
    """Token has expired."""
    pass


class TokenInvalidError(TokenError):
    """Token is invalid or malformed."""
    pass


# =============================================================================
# Token Issuer
# =============================================================================


class TokenIssuer:
    """Mints and verifies session tokens signed with the shared secret."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def sign(self, user: User) -> str:
        """Create a signed token embedding the user's public fields."""
        now = utc_now()
        payload = {
            "data": {"email": user.email, "name": user.username, "_id": user.id},
            "iat": now,
            "exp": now + timedelta(minutes=self.settings.jwt_expire_minutes),
        }
        return jwt.encode(payload, self.settings.jwt_secret_key, algorithm=self.settings.jwt_algorithm)

    def verify(self, token: str) -> SessionClaims:
        """
        Decode and validate a session token.

        Raises:
            TokenExpiredError: Token has expired
            TokenInvalidError: Token is invalid
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected session token: {e}")
            raise TokenInvalidError("Invalid Token")

        data = payload.get("data")
        if not isinstance(data, dict) or not data.get("_id"):
            raise TokenInvalidError("Invalid Token")

        return SessionClaims(
            user_id=str(data["_id"]),
            email=data.get("email") or "",
            name=data.get("name") or "",
        )
