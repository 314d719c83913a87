# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# The Settings class validates all values at startup, so a missing key or a
# malformed URL fails the boot instead of the first signup.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses pydantic-settings to:
    - Automatically load from .env file
    - Validate types and constraints
    - Provide sensible defaults for development

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # These are required - app won't start without them

    SUPABASE_URL: str = Field(
        ...,  # ... means required (no default)
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Supabase anon/public API key (used for per-request user auth calls)"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    SUPABASE_JWT_SECRET: str = Field(
        default="",
        description="Legacy HS256 JWT secret; HS256 tokens are rejected while this is empty"
    )

    SUPABASE_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Upper bound for every call made to Supabase"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (rate limiting + Celery)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the rate limiter and Celery broker"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    APP_URL: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("APP_URL", "NEXT_PUBLIC_APP_URL"),
        description="Public base URL of the web app, used for redirects and magic links"
    )

    # -------------------------------------------------------------------------
    # Security
    # -------------------------------------------------------------------------

    ADMIN_SETUP_KEY: str | None = Field(
        default=None,
        description="Secret that gates one-time admin promotion. Unset disables it."
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    SESSION_COOKIE_SECURE: bool = Field(
        default=False,
        description="Set the Secure flag on session cookies"
    )

    # -------------------------------------------------------------------------
    # Invite Settings
    # -------------------------------------------------------------------------

    INVITE_TOKEN_TTL_HOURS: int = Field(
        default=72,
        ge=1,
        le=24 * 30,
        description="How long a single-recipient invite token stays valid"
    )

    INVITE_VALIDATE_MAX_ATTEMPTS: int = Field(
        default=10,
        ge=1,
        description="Invite validation attempts allowed per client per window"
    )

    INVITE_VALIDATE_WINDOW_SECONDS: int = Field(
        default=600,
        ge=1,
        description="Length of the invite validation rate-limit window"
    )

    TRUSTED_PROXY_HOPS: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Reverse proxies in front of the API that append to X-Forwarded-For (0 ignores the header)"
    )

    # -------------------------------------------------------------------------
    # Reconciliation Sweep
    # -------------------------------------------------------------------------

    RECONCILE_STALE_AFTER_HOURS: int = Field(
        default=72,
        ge=1,
        description="Unconfirmed identities without a profile older than this are discarded"
    )

    RECONCILE_INTERVAL_MINUTES: int = Field(
        default=15,
        ge=1,
        description="How often the reconciliation sweep runs"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        # Load from .env file in project root
        env_file=".env",
        env_file_encoding="utf-8",
        # Don't fail if .env doesn't exist (useful for production where
        # env vars are set directly)
        env_ignore_empty=True,
        # Case-sensitive environment variable names
        case_sensitive=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Handles comma-separated values and strips whitespace.
        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def app_base_url(self) -> str:
        """APP_URL without a trailing slash."""
        return self.APP_URL.rstrip("/")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
