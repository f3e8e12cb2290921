"""
FastAPI application for the Postboard backend.

Serves the GraphQL API at /graphql and a health probe at /health.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from strawberry.fastapi import GraphQLRouter

from postboard.api.schema import GraphQLContext, schema
from postboard.auth.context import AuthContext
from postboard.auth.identity import GoogleIdentityVerifier
from postboard.auth.jwt import TokenIssuer
from postboard.auth.policies import CallerResolver, get_caller
from postboard.config import Settings, get_settings
from postboard.integrations.checkout import StripeCheckout
from postboard.integrations.email import EmailService
from postboard.integrations.sentry import init_sentry
from postboard.services import build_services
from postboard.storage import DocumentStorage, create_storage

logger = logging.getLogger(__name__)


# =============================================================================
# GraphQL Context
# =============================================================================


async def get_context(
    request: Request,
    caller: AuthContext = Depends(get_caller),
) -> GraphQLContext:
    return GraphQLContext(caller=caller, services=request.app.state.services)


# =============================================================================
# App Factory
# =============================================================================


def create_app(
    settings: Settings | None = None,
    storage: DocumentStorage | None = None,
    email_service: EmailService | None = None,
    checkout: StripeCheckout | None = None,
    identity_verifier: GoogleIdentityVerifier | None = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators default to the ones selected by ``settings``; tests pass
    their own (in-memory storage, stubbed providers).
    """
    settings = settings or get_settings()
    storage = storage or create_storage(settings)
    token_issuer = TokenIssuer(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize and cleanup app resources."""
        if init_sentry(settings):
            logger.info("Sentry error tracking enabled")

        await storage.initialize()

        app.state.services = build_services(
            settings,
            storage,
            token_issuer=token_issuer,
            email_service=email_service,
            checkout=checkout,
        )
        app.state.caller_resolver = CallerResolver(
            settings,
            storage,
            token_issuer=token_issuer,
            identity_verifier=identity_verifier or GoogleIdentityVerifier(settings),
        )

        logger.info(
            f"Postboard API starting in {settings.environment} mode "
            f"(storage={settings.storage_backend}, auth={settings.auth_mode})"
        )

        yield

        await storage.close()
        logger.info("Postboard API shutting down")

    app = FastAPI(
        title="Postboard API",
        description="GraphQL API for posts, comments, follows and checkout",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    graphql_router = GraphQLRouter(
        schema,
        context_getter=get_context,
        graphql_ide=None if settings.is_production else "graphiql",
    )
    app.include_router(graphql_router, prefix="/graphql")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "postboard-api"}

    return app


# uvicorn postboard.api.app:app
app = create_app()
