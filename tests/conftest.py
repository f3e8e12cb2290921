"""
Shared fixtures.

Everything runs against the in-memory store with providers stubbed out.
"""

import asyncio

import pytest

from postboard.auth import AuthContext, TokenIssuer
from postboard.config import Settings
from postboard.integrations.email import EmailService
from postboard.services import build_services
from postboard.storage import InMemoryDocumentStorage


class RecordingEmailService(EmailService):
    """Email service that remembers welcome emails instead of sending them."""

    def __init__(self, settings):
        super().__init__(settings)
        self.welcomed: list[tuple[str, str]] = []

    async def send_welcome(self, email: str, name: str) -> bool:
        self.welcomed.append((email, name))
        return True


def caller_for(user) -> AuthContext:
    """AuthContext for an existing user, as the gate would build it."""
    return AuthContext(user_id=user.id, user_email=user.email, user_name=user.username)


class YieldingStorage(InMemoryDocumentStorage):
    """In-memory store that yields to the event loop on every call, as a network driver does."""

    async def get(self, collection, id):
        await asyncio.sleep(0)
        return await super().get(collection, id)

    async def find_one(self, collection, filters):
        await asyncio.sleep(0)
        return await super().find_one(collection, filters)

    async def modify(self, collection, id, **kwargs):
        await asyncio.sleep(0)
        return await super().modify(collection, id, **kwargs)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    """Test settings, isolated from any .env file."""
    return Settings(
        _env_file=None,
        environment="test",
        bcrypt_rounds=4,
        jwt_secret_key="test-secret",
        stripe_secret_key="sk_test_123",
        google_oauth_client_id="client-123.apps.googleusercontent.com",
    )


@pytest.fixture
def storage():
    return InMemoryDocumentStorage()


@pytest.fixture
def token_issuer(settings):
    return TokenIssuer(settings)


@pytest.fixture
def email_service(settings):
    return RecordingEmailService(settings)


@pytest.fixture
def services(settings, storage, token_issuer, email_service):
    return build_services(settings, storage, token_issuer=token_issuer, email_service=email_service)


@pytest.fixture
def yielding_services(settings, token_issuer, email_service):
    """Services over a store whose calls interleave under asyncio.gather."""
    return build_services(settings, YieldingStorage(), token_issuer=token_issuer, email_service=email_service)


@pytest.fixture
def anonymous():
    return AuthContext.anonymous()


@pytest.fixture
def register(services):
    """Register a user and return ``(user, ctx)``."""

    async def _register(username: str, email: str | None = None, password: str = "secret123"):
        result = await services.users.register(username, email or f"{username}@example.com", password)
        return result.user, caller_for(result.user)

    return _register
