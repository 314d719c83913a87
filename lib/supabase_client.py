# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module wraps the async Supabase SDK for the rest of the application.
#
# Two kinds of client exist:
# - The service-role client: a process-wide singleton used for table access
#   and the Auth admin API. It never holds a user session.
# - Auth clients: created fresh per request with the anon key for user-level
#   calls (sign up, sign in, code exchange). The SDK keeps the session of
#   the last sign-in in memory, so sharing one across requests would leak
#   sessions between users.
#
# Every call goes through `SupabaseClient.run`, which applies the configured
# timeout and converts SDK failures into the API's error kinds.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   row = await SupabaseClient.fetch_one("profiles", id=user_id)
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, AuthError, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from app.config import settings
from app.exceptions import (
    AuthenticationError,
    ConflictError,
    TransportError,
    UpstreamTimeoutError,
)

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST / Postgres error codes we care about
UNIQUE_VIOLATION = "23505"

# Page size used when walking the Auth admin user list
USER_PAGE_SIZE = 200


class SupabaseClientError(TransportError):
    """
    Error during Supabase operations.

    Provides actionable error messages: the code names the failed action
    and the suggestion says what to check.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=code,
            suggestion=suggestion,
            details=details,
        )


class SupabaseClient:
    """
    Typed wrapper for Supabase operations.

    Implements the singleton pattern for the service-role client. All
    methods are class methods for easy access without instantiation.

    Example:
        client = await SupabaseClient.get_client()
        response = await SupabaseClient.execute(
            client.table("invite_codes").select("*").order("created_at", desc=True),
            action="list invite codes",
        )
    """

    _instance: AsyncClient | None = None

    @classmethod
    async def get_client(cls) -> AsyncClient:
        """
        Get or create the singleton service-role client.

        Uses the service_role key which bypasses Row Level Security (RLS).
        This is appropriate for server-side operations only.

        Returns:
            AsyncClient: Supabase client instance

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = await acreate_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY,
                    options=cls._options(),
                )
                logger.info("Supabase service client initialized")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file",
                )
        return cls._instance

    @classmethod
    async def create_auth_client(cls) -> AsyncClient:
        """
        Create a fresh anon-key client for one user-level auth flow.

        Raises:
            SupabaseClientError: If client creation fails
        """
        try:
            return await acreate_client(
                settings.SUPABASE_URL,
                settings.SUPABASE_ANON_KEY,
                options=cls._options(flow_type="pkce"),
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to create Supabase auth client: {e}",
                code="AUTH_CLIENT_INIT_FAILED",
                suggestion="Check SUPABASE_URL and SUPABASE_ANON_KEY in your .env file",
            )

    @classmethod
    def _options(cls, **overrides: Any) -> AsyncClientOptions:
        timeout = settings.SUPABASE_TIMEOUT_SECONDS
        return AsyncClientOptions(
            auto_refresh_token=False,
            persist_session=False,
            postgrest_client_timeout=timeout,
            storage_client_timeout=int(timeout),
            **overrides,
        )

    @classmethod
    def reset(cls) -> None:
        """Drop the cached service client (used on shutdown and in tests)."""
        cls._instance = None

    # -------------------------------------------------------------------------
    # Call Wrappers
    # -------------------------------------------------------------------------

    @classmethod
    async def run(cls, call: Awaitable[Any], action: str) -> Any:
        """
        Await one Supabase call with the configured timeout.

        Args:
            call: The SDK awaitable (query.execute(), auth.sign_up(...), ...)
            action: Short description used in error messages and logs

        Returns:
            Whatever the SDK call returns

        Raises:
            UpstreamTimeoutError: If the call exceeds SUPABASE_TIMEOUT_SECONDS
            ConflictError: On a unique-constraint violation
            AuthenticationError: When Supabase Auth rejects the call
            SupabaseClientError: For any other SDK or network failure
        """
        try:
            return await asyncio.wait_for(call, timeout=settings.SUPABASE_TIMEOUT_SECONDS)

        except asyncio.TimeoutError:
            logger.error(f"Supabase call timed out: {action}")
            raise UpstreamTimeoutError(
                message=f"Timed out while trying to {action}",
                suggestion="Try again in a moment",
                details={"timeout_seconds": settings.SUPABASE_TIMEOUT_SECONDS},
            )

        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictError(
                    message=f"Could not {action}: value already exists",
                    code="DUPLICATE",
                    suggestion="Choose a different value",
                    details={"hint": e.details} if e.details else None,
                )
            logger.error(f"Supabase API error during '{action}': {e.message}")
            raise SupabaseClientError(
                message=f"Failed to {action}: {e.message}",
                code="API_ERROR",
                suggestion="Check that the table exists and the service key has access",
                details={"pg_code": e.code} if e.code else None,
            )

        except AuthError as e:
            raise AuthenticationError(message=getattr(e, "message", None) or str(e))

        except httpx.HTTPError as e:
            logger.error(f"Network error during '{action}': {e}")
            raise SupabaseClientError(
                message=f"Could not reach Supabase to {action}",
                code="NETWORK_ERROR",
                suggestion="Check SUPABASE_URL and network connectivity",
            )

    @classmethod
    async def execute(cls, query: Any, action: str) -> Any:
        """Execute a PostgREST query builder through `run`."""
        return await cls.run(query.execute(), action)

    # -------------------------------------------------------------------------
    # Table Helpers
    # -------------------------------------------------------------------------

    @classmethod
    async def fetch_one(cls, table: str, **filters: Any) -> dict[str, Any] | None:
        """
        Fetch the first row of `table` matching all equality filters.

        Args:
            table: Table name
            **filters: column=value equality filters

        Returns:
            Row dict, or None if no row matches

        Example:
            profile = await SupabaseClient.fetch_one("profiles", id=user_id)
        """
        client = await cls.get_client()
        query = client.table(table).select("*")
        for column, value in filters.items():
            query = query.eq(column, value)

        response = await cls.execute(query.limit(1), action=f"fetch from {table}")
        rows = response.data or []
        return rows[0] if rows else None

    # -------------------------------------------------------------------------
    # Auth Admin Helpers
    # -------------------------------------------------------------------------

    @classmethod
    async def iter_users(cls):
        """
        Yield every auth user, one admin API page at a time.

        Yields:
            gotrue User objects
        """
        client = await cls.get_client()
        page = 1
        while True:
            users = await cls.run(
                client.auth.admin.list_users(page=page, per_page=USER_PAGE_SIZE),
                action="list users",
            )
            if not users:
                return
            for user in users:
                yield user
            if len(users) < USER_PAGE_SIZE:
                return
            page += 1

    @classmethod
    async def find_user_by_email(cls, email: str) -> Any | None:
        """
        Find an auth user by email (case-insensitive).

        Returns:
            The User object, or None when nobody signed up with that email
        """
        wanted = email.strip().lower()
        async for user in cls.iter_users():
            if (user.email or "").lower() == wanted:
                return user
        return None
