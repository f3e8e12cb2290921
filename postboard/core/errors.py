"""
Error kinds raised by the postboard services.

Every error carries a stable ``code`` that is exposed to API clients through
the GraphQL ``extensions`` field, next to a human-readable message.
"""

from __future__ import annotations

import asyncio
import logging
from functools import wraps
from typing import Any, Callable

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that are reported to API clients as-is."""

    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def extensions(self) -> dict[str, Any]:
        return {"code": self.code}


class AuthenticationError(AppError):
    """Missing or invalid credential, or failed login."""

    code = "UNAUTHENTICATED"


class AuthorizationError(AppError):
    """Valid identity, insufficient privilege (e.g. not the owner)."""

    code = "FORBIDDEN"


class ValidationError(AppError):
    """Missing, oversized or duplicate field."""

    code = "BAD_USER_INPUT"


class NotFoundError(AppError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"


class DependencyError(AppError):
    """An external provider or a store write failed."""

    code = "DEPENDENCY_FAILURE"


class InternalError(AppError):
    """Unexpected failure, wrapped with a generic message."""

    code = "INTERNAL_SERVER_ERROR"


# Errors caused by the client rather than by the service
CLIENT_ERRORS = (AuthenticationError, AuthorizationError, ValidationError, NotFoundError)


def reports_errors(action: str) -> Callable:
    """
    Wrap an async operation so unexpected failures surface as InternalError.

    AppError subclasses pass through untouched. Anything else is logged with
    its traceback, reported to Sentry and replaced by
    "Error occurred while <action>".

    Usage:
        @reports_errors("adding the post")
        async def add_post(self, ctx, title, description):
            ...
    """
    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError("reports_errors only wraps coroutine functions")

        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except AppError:
                raise
            except Exception as e:
                from postboard.integrations.sentry import capture_exception

                logger.exception(f"Error occurred while {action}")
                capture_exception(e, action=action)
                raise InternalError(f"Error occurred while {action}") from e

        return wrapper

    return decorator
