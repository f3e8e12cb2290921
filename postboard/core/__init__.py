"""
Core module - data models, error kinds and shared helpers.

This module contains:
- models: Stored entities (User, Post, Comment, Payment)
- errors: Error kinds surfaced to API clients
- utils: Shared utility functions
"""

from postboard.core.models import (
    AuthProvider,
    Comment,
    Document,
    Payment,
    Post,
    User,
)

from postboard.core.errors import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    DependencyError,
    InternalError,
    NotFoundError,
    ValidationError,
    reports_errors,
)

from postboard.core.utils import generate_id, normalize_email, utc_now

__all__ = [
    # Models
    "AuthProvider",
    "Comment",
    "Document",
    "Payment",
    "Post",
    "User",
    # Errors
    "AppError",
    "AuthenticationError",
    "AuthorizationError",
    "DependencyError",
    "InternalError",
    "NotFoundError",
    "ValidationError",
    "reports_errors",
    # Utils
    "generate_id",
    "normalize_email",
    "utc_now",
]
