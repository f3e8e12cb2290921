"""
Tests for session tokens, passwords, the capability guard and the caller gate.
"""

from datetime import timedelta

import jwt
import pytest

from postboard.auth import (
    AuthContext,
    CallerResolver,
    Capability,
    Relation,
    TokenExpiredError,
    TokenInvalidError,
    extract_bearer_token,
    get_capabilities,
    hash_password,
    verify_password,
)
from postboard.auth.context import UNLINKED_IDENTITY_MESSAGE
from postboard.auth.identity import ExternalIdentity
from postboard.config import Settings
from postboard.core.errors import AuthenticationError, AuthorizationError
from postboard.core.models import User
from postboard.core.utils import utc_now


# =============================================================================
# Passwords
# =============================================================================


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("secret123", rounds=4)
        assert hashed != "secret123"
        assert verify_password("secret123", hashed)
        assert not verify_password("wrong", hashed)

    def test_default_cost_factor(self):
        assert hash_password("secret123").startswith("$2b$10$")
        assert Settings(_env_file=None).bcrypt_rounds == 10

    def test_garbage_hash_does_not_verify(self):
        assert not verify_password("secret123", "not-a-bcrypt-hash")


# =============================================================================
# Session Tokens
# =============================================================================


class TestTokenIssuer:
    def test_sign_embeds_identity(self, token_issuer, settings):
        user = User(id="user_1", username="alice", email="alice@example.com")

        token = token_issuer.sign(user)
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=["HS256"])

        assert payload["data"] == {"email": "alice@example.com", "name": "alice", "_id": "user_1"}
        assert payload["exp"] - payload["iat"] == settings.jwt_expire_minutes * 60

    def test_verify_round_trip(self, token_issuer):
        user = User(id="user_1", username="alice", email="alice@example.com")
        claims = token_issuer.verify(token_issuer.sign(user))
        assert (claims.user_id, claims.email, claims.name) == ("user_1", "alice@example.com", "alice")

    def test_expired(self, token_issuer, settings):
        past = utc_now() - timedelta(hours=3)
        token = jwt.encode(
            {"data": {"_id": "user_1", "email": "a@x.com", "name": "a"}, "iat": past, "exp": past + timedelta(minutes=1)},
            settings.jwt_secret_key,
            algorithm="HS256",
        )
        with pytest.raises(TokenExpiredError):
            token_issuer.verify(token)

    def test_wrong_secret(self, token_issuer):
        token = jwt.encode({"data": {"_id": "user_1"}}, "another-secret", algorithm="HS256")
        with pytest.raises(TokenInvalidError):
            token_issuer.verify(token)

    def test_missing_identity(self, token_issuer, settings):
        token = jwt.encode({"sub": "user_1"}, settings.jwt_secret_key, algorithm="HS256")
        with pytest.raises(TokenInvalidError):
            token_issuer.verify(token)

    def test_token_errors_are_authentication_errors(self, token_issuer):
        with pytest.raises(AuthenticationError):
            token_issuer.verify("garbage")


# =============================================================================
# Capabilities & AuthContext
# =============================================================================


class TestCapabilities:
    def test_anonymous_has_nothing(self):
        assert get_capabilities(Relation.ANONYMOUS) == set()

    def test_owner_only(self):
        assert Capability.POST_DELETE not in get_capabilities(Relation.MEMBER)
        assert Capability.POST_DELETE in get_capabilities(Relation.OWNER)
        assert Capability.POST_CREATE in get_capabilities(Relation.OWNER)


class TestAuthContext:
    def test_relation(self):
        ctx = AuthContext(user_id="user_1")
        assert ctx.relation_to("user_1") == Relation.OWNER
        assert ctx.relation_to("user_2") == Relation.MEMBER
        assert ctx.relation_to() == Relation.MEMBER
        assert AuthContext.anonymous().relation_to("user_1") == Relation.ANONYMOUS

    def test_can_with_strings(self):
        ctx = AuthContext(user_id="user_1")
        assert ctx.can("post.delete", owner_id="user_1")
        assert not ctx.can("post.delete", owner_id="user_2")
        assert not ctx.can("no.such.capability")

    def test_require_anonymous(self):
        with pytest.raises(AuthenticationError) as exc_info:
            AuthContext.anonymous().require(Capability.POST_LIKE)
        assert exc_info.value.message == "You are not authorized to like this post. Please authenticate."

    def test_require_owner(self):
        with pytest.raises(AuthorizationError) as exc_info:
            AuthContext(user_id="user_2").require(Capability.COMMENT_DELETE, owner_id="user_1")
        assert exc_info.value.message == (
            "You are not authorized to delete this comment. Only the owner can delete it."
        )

    def test_require_passes(self):
        AuthContext(user_id="user_1").require(Capability.POST_EDIT, owner_id="user_1")

    def test_identity_without_account(self):
        ctx = AuthContext(user_email="new@example.com", identity_subject="sub-1")
        with pytest.raises(AuthenticationError, match=UNLINKED_IDENTITY_MESSAGE):
            ctx.require(Capability.POST_CREATE)

    def test_require_authenticated(self):
        # Any signed-in caller passes; ownership is checked once the entity is loaded
        AuthContext(user_id="user_2").require_authenticated(Capability.POST_DELETE)

        with pytest.raises(AuthenticationError) as exc_info:
            AuthContext.anonymous().require_authenticated(Capability.POST_DELETE)
        assert exc_info.value.message == "You are not authorized to delete this post. Please authenticate."

        unlinked = AuthContext(user_email="new@example.com", identity_subject="sub-1")
        with pytest.raises(AuthenticationError, match=UNLINKED_IDENTITY_MESSAGE):
            unlinked.require_authenticated(Capability.COMMENT_DELETE)


# =============================================================================
# Gate
# =============================================================================


class TestExtractBearerToken:
    def test_no_header(self):
        assert extract_bearer_token(None) is None
        assert extract_bearer_token("   ") is None

    def test_bearer(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"
        assert extract_bearer_token("bearer abc") == "abc"

    @pytest.mark.parametrize("header", ["abc.def.ghi", "Basic dXNlcjpwYXNz", "Bearer", "Bearer   "])
    def test_malformed(self, header):
        with pytest.raises(AuthenticationError, match="Invalid Authorization header"):
            extract_bearer_token(header)


class StubVerifier:
    """Identity verifier that accepts exactly one token."""

    def __init__(self, identity):
        self.identity = identity

    async def verify(self, token):
        if token != "good-id-token":
            raise AuthenticationError("Invalid Token")
        return self.identity


class TestCallerResolver:
    @pytest.mark.asyncio
    async def test_anonymous_without_header(self, settings, storage, token_issuer):
        resolver = CallerResolver(settings, storage, token_issuer, identity_verifier=None)
        ctx = await resolver.resolve(None)
        assert ctx.is_anonymous

    @pytest.mark.asyncio
    async def test_session_token(self, settings, storage, token_issuer, register):
        alice, _ = await register("alice")
        resolver = CallerResolver(settings, storage, token_issuer, identity_verifier=None)

        ctx = await resolver.resolve(f"Bearer {token_issuer.sign(alice)}")

        assert ctx.user_id == alice.id
        assert ctx.user_email == "alice@example.com"
        assert not ctx.has_external_identity

    @pytest.mark.asyncio
    async def test_invalid_session_token(self, settings, storage, token_issuer):
        resolver = CallerResolver(settings, storage, token_issuer, identity_verifier=None)
        with pytest.raises(AuthenticationError):
            await resolver.resolve("Bearer not-a-token")

    @pytest.mark.asyncio
    async def test_external_identity_with_account(self, settings, storage, token_issuer, register):
        alice, _ = await register("alice")
        settings.auth_mode = "external"
        verifier = StubVerifier(
            ExternalIdentity(subject="google-sub-1", email="alice@example.com", name="Alice A")
        )
        resolver = CallerResolver(settings, storage, token_issuer, identity_verifier=verifier)

        ctx = await resolver.resolve("Bearer good-id-token")

        assert ctx.user_id == alice.id
        assert ctx.identity_subject == "google-sub-1"
        assert ctx.user_name == "alice"

    @pytest.mark.asyncio
    async def test_unverified_identity_is_not_linked(self, settings, storage, token_issuer, register):
        await register("victim", email="gina@example.com")
        settings.auth_mode = "external"
        verifier = StubVerifier(
            ExternalIdentity(subject="other-sub", email="gina@example.com", name="Gina", email_verified=False)
        )
        resolver = CallerResolver(settings, storage, token_issuer, identity_verifier=verifier)

        with pytest.raises(AuthenticationError, match="Email not verified"):
            await resolver.resolve("Bearer good-id-token")

    @pytest.mark.asyncio
    async def test_external_identity_without_account(self, settings, storage, token_issuer):
        settings.auth_mode = "external"
        verifier = StubVerifier(
            ExternalIdentity(subject="google-sub-2", email="new@example.com", name="Newcomer")
        )
        resolver = CallerResolver(settings, storage, token_issuer, identity_verifier=verifier)

        ctx = await resolver.resolve("Bearer good-id-token")

        assert ctx.is_anonymous
        assert ctx.has_external_identity
        assert ctx.user_email == "new@example.com"

    @pytest.mark.asyncio
    async def test_external_identity_rejected(self, settings, storage, token_issuer):
        settings.auth_mode = "external"
        verifier = StubVerifier(ExternalIdentity(subject="s", email="a@x.com", name="a"))
        resolver = CallerResolver(settings, storage, token_issuer, identity_verifier=verifier)

        with pytest.raises(AuthenticationError):
            await resolver.resolve("Bearer forged-token")
