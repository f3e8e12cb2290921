"""Services - one method per API action, each guarded by the caller's AuthContext."""

from __future__ import annotations

from dataclasses import dataclass

from postboard.auth.jwt import TokenIssuer
from postboard.config import Settings
from postboard.integrations.checkout import StripeCheckout
from postboard.integrations.email import EmailService
from postboard.services.base import Service
from postboard.services.comments import CommentService
from postboard.services.payments import PaymentService
from postboard.services.posts import PostService
from postboard.services.users import AuthResult, UserService
from postboard.storage import DocumentStorage


@dataclass
class Services:
    """The services shared by every request."""

    users: UserService
    posts: PostService
    comments: CommentService
    payments: PaymentService


def build_services(
    settings: Settings,
    storage: DocumentStorage,
    token_issuer: TokenIssuer | None = None,
    email_service: EmailService | None = None,
    checkout: StripeCheckout | None = None,
) -> Services:
    """Wire the services onto one storage backend."""
    return Services(
        users=UserService(
            storage,
            token_issuer=token_issuer or TokenIssuer(settings),
            email_service=email_service or EmailService(settings),
            settings=settings,
        ),
        posts=PostService(storage),
        comments=CommentService(storage),
        payments=PaymentService(storage, checkout=checkout or StripeCheckout(settings)),
    )


__all__ = [
    "AuthResult",
    "CommentService",
    "PaymentService",
    "PostService",
    "Service",
    "Services",
    "UserService",
    "build_services",
]
