"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 5000
    cors_origins: str = "http://localhost:3000"

    # ==========================================================================
    # Storage
    # ==========================================================================

    storage_backend: str = "memory"  # "memory" or "mongo"
    mongodb_uri: str = ""
    mongodb_database: str = "postboard"

    # ==========================================================================
    # Authentication
    # ==========================================================================

    # "session": self-issued JWTs, "external": identity provider ID tokens
    auth_mode: str = "session"

    jwt_secret_key: str = "dev-jwt-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 120
    bcrypt_rounds: int = 10

    # External identity provider (Google)
    google_oauth_client_id: str = ""
    google_jwks_url: str = "https://www.googleapis.com/oauth2/v3/certs"

    # ==========================================================================
    # Payments (Stripe Checkout)
    # ==========================================================================

    stripe_secret_key: str = ""
    stripe_success_url: str = "http://localhost:3000/success"
    stripe_cancel_url: str = "http://localhost:3000/cancel"
    checkout_price_cents: int = 500
    checkout_currency: str = "usd"
    checkout_product_name: str = "Postboard Premium"

    # ==========================================================================
    # AWS (SES email)
    # ==========================================================================

    aws_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_ses_from_email: str = ""

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def use_aws(self) -> bool:
        """Whether AWS services should be used."""
        return bool(self.aws_access_key_id and self.aws_secret_access_key)

    @property
    def use_external_identity(self) -> bool:
        return self.auth_mode == "external"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
