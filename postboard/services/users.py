"""
User Service.

Registration, password and external-identity login, profile edits and the
follow graph. Follow and unfollow touch two documents (the actor's following
set and the target's follower counter); the store offers no transaction, so
the second write is compensated by undoing the first when it fails.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from postboard.auth.capabilities import Capability
from postboard.auth.context import AuthContext
from postboard.auth.jwt import MAX_PASSWORD_BYTES, TokenIssuer, hash_password, verify_password
from postboard.config import Settings, get_settings
from postboard.core.errors import (
    AuthenticationError,
    DependencyError,
    NotFoundError,
    ValidationError,
    reports_errors,
)
from postboard.core.models import (
    MAX_BIO_LEN,
    MAX_USERNAME_LEN,
    RANDOM_USERS_SAMPLE_SIZE,
    AuthProvider,
    User,
)
from postboard.core.utils import normalize_email
from postboard.integrations.email import EmailService
from postboard.services.base import Service
from postboard.storage import Collections, DocumentStorage, UniqueConstraintError

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)

USER_EXISTS_MESSAGE = "User already exists with this email"
USER_MISSING_MESSAGE = "User does not exist"


class AuthResult(BaseModel):
    """A user together with a freshly issued session token."""
    user: User
    token: str


class UserService(Service):
    """Accounts, login and the follow graph."""

    def __init__(
        self,
        storage: DocumentStorage,
        token_issuer: TokenIssuer,
        email_service: EmailService,
        settings: Settings | None = None,
    ):
        super().__init__(storage)
        self.settings = settings or get_settings()
        self.token_issuer = token_issuer
        self.email_service = email_service

    # =========================================================================
    # Queries
    # =========================================================================

    @reports_errors("fetching all users")
    async def get_all(self) -> list[User]:
        logger.info("Fetching all users")
        return await self._list(Collections.USERS, User)

    @reports_errors("fetching the user")
    async def get(self, user_id: str) -> User | None:
        logger.info(f"Fetching user with ID: {user_id}")
        return User.from_doc(await self.storage.get(Collections.USERS, user_id))

    @reports_errors("fetching the current user")
    async def me(self, ctx: AuthContext) -> User | None:
        if ctx.is_anonymous:
            return None
        return User.from_doc(await self.storage.get(Collections.USERS, ctx.user_id))

    @reports_errors("fetching random users")
    async def get_random(self) -> list[User]:
        """Up to five distinct users in no particular order."""
        logger.info("Fetching random users")
        docs = await self.storage.sample(Collections.USERS, RANDOM_USERS_SAMPLE_SIZE)
        return [User.from_doc(doc) for doc in docs]

    @reports_errors("fetching the user's posts count")
    async def posts_count(self, user_id: str) -> int:
        return await self.storage.count(Collections.POSTS, {"author_id": user_id})

    # =========================================================================
    # Registration & Login
    # =========================================================================

    @reports_errors("registering the user")
    async def register(self, username: str, email: str, password: str) -> AuthResult:
        username = (username or "").strip()
        email = normalize_email(email)
        logger.info(f"Registering new user: {username} {email}")

        if not username or not email or not password:
            raise ValidationError("Username, email and password are required")
        self._check_username(username)
        self._check_email(email)
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be no more than {MAX_PASSWORD_BYTES} bytes")

        if await self.storage.find_one(Collections.USERS, {"email": email}):
            logger.warning(f"User already exists with this email: {email}")
            raise ValidationError(USER_EXISTS_MESSAGE)

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password, rounds=self.settings.bcrypt_rounds),
            auth_provider=AuthProvider.PASSWORD,
        )
        await self._insert(user)
        await self.email_service.send_welcome(user.email, user.username)

        logger.info(f"User registered successfully: {user.id}")
        return AuthResult(user=user, token=self.token_issuer.sign(user))

    @reports_errors("logging in")
    async def login(self, email: str, password: str) -> AuthResult:
        email = normalize_email(email)
        logger.info(f"Logging in with email: {email}")

        user = User.from_doc(await self.storage.find_one(Collections.USERS, {"email": email}))
        if user is None:
            logger.warning(f"No user found with this email: {email}")
            raise AuthenticationError("No user with this email found")

        if not user.has_password:
            logger.warning(f"Password login attempted on a Google account: {email}")
            raise AuthenticationError("This account is registered with Google. Please sign in with Google.")

        if not verify_password(password or "", user.password_hash):
            logger.warning(f"Invalid password for email: {email}")
            raise AuthenticationError("Invalid password credentials")

        logger.info(f"User logged in successfully: {user.id}")
        return AuthResult(user=user, token=self.token_issuer.sign(user))

    @reports_errors("logging in with Google")
    async def google_login(self, ctx: AuthContext, username: str, email: str) -> AuthResult:
        """
        Sign in an externally-authenticated user, creating the account on first use.

        When the request carries a verified provider identity, the email must
        be the one the provider vouched for.
        """
        email = normalize_email(email)
        logger.info(f"Logging in with Google. Email: {email}")
        self._check_email(email)

        if ctx.has_external_identity and ctx.user_email != email:
            raise AuthenticationError("Identity does not match the requested email")

        user = User.from_doc(await self.storage.find_one(Collections.USERS, {"email": email}))
        if user is None:
            username = (username or "").strip() or email.split("@")[0]
            self._check_username(username)
            logger.info(f"Creating new user with Google login. Email: {email}")
            user = User(username=username, email=email, auth_provider=AuthProvider.GOOGLE)
            await self._insert(user)
            await self.email_service.send_welcome(user.email, user.username)

        logger.info(f"User logged in with Google successfully: {user.id}")
        return AuthResult(user=user, token=self.token_issuer.sign(user))

    # =========================================================================
    # Profile
    # =========================================================================

    @reports_errors("updating the profile")
    async def update_profile(
        self,
        ctx: AuthContext,
        username: str | None = None,
        bio: str | None = None,
    ) -> User:
        ctx.require(Capability.PROFILE_EDIT)

        updates: dict[str, Any] = {}
        if username is not None:
            username = username.strip()
            if not username:
                raise ValidationError("Username is required")
            self._check_username(username)
            updates["username"] = username
        if bio is not None:
            bio = bio.strip()
            if len(bio) > MAX_BIO_LEN:
                raise ValidationError(f"Bio must be no more than {MAX_BIO_LEN} characters")
            updates["bio"] = bio or None

        if not updates:
            return await self._load(Collections.USERS, User, ctx.user_id, USER_MISSING_MESSAGE)

        doc = await self.storage.modify(Collections.USERS, ctx.user_id, set_fields=updates)
        if doc is None:
            raise NotFoundError(USER_MISSING_MESSAGE)
        logger.info(f"Profile updated for user: {ctx.user_id}")
        return User.from_doc(doc)

    # =========================================================================
    # Follow Graph
    # =========================================================================

    @reports_errors("following the user")
    async def follow(self, ctx: AuthContext, target_id: str) -> User:
        """Add ``target_id`` to the caller's following set and bump its follower count."""
        ctx.require(Capability.USER_FOLLOW)
        logger.info(f"User: {ctx.user_id} following user: {target_id}")

        if str(target_id) == str(ctx.user_id):
            raise ValidationError("You cannot follow yourself")

        await self._load(Collections.USERS, User, target_id, USER_MISSING_MESSAGE)

        updated = await self._apply_pair(
            first=lambda: self.storage.modify(
                Collections.USERS,
                ctx.user_id,
                add_to_set={"following_users": target_id},
                where={"following_users": {"$ne": target_id}},
            ),
            second=lambda: self.storage.modify(
                Collections.USERS, target_id, inc={"followers": 1}
            ),
            undo_first=lambda: self.storage.modify(
                Collections.USERS, ctx.user_id, pull={"following_users": target_id}
            ),
            target_id=target_id,
            action="following the user",
        )
        if updated is None:
            # Already following
            return await self._load(Collections.USERS, User, ctx.user_id, USER_MISSING_MESSAGE)

        logger.info(f"User followed successfully: {ctx.user_id} -> {target_id}")
        return User.from_doc(updated)

    @reports_errors("unfollowing the user")
    async def unfollow(self, ctx: AuthContext, target_id: str) -> User:
        """Remove ``target_id`` from the caller's following set and lower its follower count."""
        ctx.require(Capability.USER_UNFOLLOW)
        logger.info(f"User: {ctx.user_id} unfollowing user: {target_id}")

        await self._load(Collections.USERS, User, target_id, USER_MISSING_MESSAGE)

        updated = await self._apply_pair(
            first=lambda: self.storage.modify(
                Collections.USERS,
                ctx.user_id,
                pull={"following_users": target_id},
                where={"following_users": target_id},
            ),
            # Follower count never goes below zero
            second=lambda: self.storage.modify(
                Collections.USERS,
                target_id,
                inc={"followers": -1},
                where={"followers": {"$gt": 0}},
            ),
            undo_first=lambda: self.storage.modify(
                Collections.USERS, ctx.user_id, add_to_set={"following_users": target_id}
            ),
            target_id=target_id,
            action="unfollowing the user",
        )
        if updated is None:
            # Not following
            return await self._load(Collections.USERS, User, ctx.user_id, USER_MISSING_MESSAGE)

        logger.info(f"User unfollowed successfully: {ctx.user_id} -> {target_id}")
        return User.from_doc(updated)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _apply_pair(
        self,
        first: Callable[[], Awaitable[dict[str, Any] | None]],
        second: Callable[[], Awaitable[dict[str, Any] | None]],
        undo_first: Callable[[], Awaitable[dict[str, Any] | None]],
        target_id: str,
        action: str,
    ) -> dict[str, Any] | None:
        """
        Apply two dependent writes; undo the first if the second fails.

        Both writes are conditional. Returns the document produced by the
        first write, or None when its condition was not met and nothing
        changed. The second write may also skip on its condition; that only
        counts as a failure when the target user is gone.
        """
        result = await first()
        if result is None:
            return None

        try:
            applied = await second()
            target_exists = (
                applied is not None
                or await self.storage.get(Collections.USERS, target_id) is not None
            )
        except Exception as e:
            logger.error(f"Second write failed while {action}, reverting the first: {e}")
            await undo_first()
            raise DependencyError(f"Error occurred while {action}") from e

        if not target_exists:
            logger.error(f"Target vanished while {action}, reverting the first write")
            await undo_first()
            raise NotFoundError(USER_MISSING_MESSAGE)

        return result

    async def _insert(self, user: User) -> None:
        try:
            await self.storage.save(Collections.USERS, user.id, user.to_doc())
        except UniqueConstraintError:
            raise ValidationError(USER_EXISTS_MESSAGE)

    @staticmethod
    def _check_email(email: str) -> None:
        try:
            _email_adapter.validate_python(email)
        except PydanticValidationError:
            raise ValidationError("Please enter a valid email address")

    @staticmethod
    def _check_username(username: str) -> None:
        if len(username) > MAX_USERNAME_LEN:
            raise ValidationError(f"Username must be no more than {MAX_USERNAME_LEN} characters")
