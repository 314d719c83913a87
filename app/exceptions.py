# =============================================================================
# app/exceptions.py - Custom Exceptions and Handlers
# =============================================================================
# Centralized error vocabulary for the API.
# Every error carries a machine-readable code, a kind that maps to an HTTP
# status, and a suggestion telling the caller HOW to fix it.
# =============================================================================

import logging
from enum import Enum
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Categories of failure surfaced through results and HTTP responses."""
    VALIDATION = "validation"
    AUTH = "auth"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"


STATUS_FOR_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTH: 401,
    ErrorKind.PERMISSION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.TRANSPORT: 502,
    ErrorKind.TIMEOUT: 504,
}


class LogbookException(Exception):
    """
    Base exception for the Little Logbook API.

    All custom exceptions inherit from this class. Subclasses pick their
    kind and default code; the HTTP status follows from the kind.
    """

    kind: ErrorKind = ErrorKind.TRANSPORT
    default_code: str = "LOGBOOK_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status_code = status_code or STATUS_FOR_KIND.get(self.kind, 500)
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
            "kind": self.kind.value,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Error Kinds
# =============================================================================

class InviteValidationError(LogbookException):
    """Raised for a bad invite code or token: unknown, inactive, expired or exhausted."""
    kind = ErrorKind.VALIDATION
    default_code = "INVITE_INVALID"


class AuthenticationError(LogbookException):
    """Raised when credentials or a session are rejected by Supabase Auth."""
    kind = ErrorKind.AUTH
    default_code = "AUTH_FAILED"


class PermissionDeniedError(LogbookException):
    """Raised when a role check fails."""
    kind = ErrorKind.PERMISSION
    default_code = "PERMISSION_DENIED"


class NotFoundError(LogbookException):
    """Raised when a profile, user or record is missing."""
    kind = ErrorKind.NOT_FOUND
    default_code = "NOT_FOUND"


class ConflictError(LogbookException):
    """Raised when a unique value (e.g. an invite code) already exists."""
    kind = ErrorKind.CONFLICT
    default_code = "CONFLICT"


class RateLimitedError(LogbookException):
    """Raised when a client exceeds the invite validation budget."""
    kind = ErrorKind.RATE_LIMITED
    default_code = "RATE_LIMITED"


class TransportError(LogbookException):
    """Raised when Supabase (or another upstream) cannot be reached or errors out."""
    kind = ErrorKind.TRANSPORT
    default_code = "UPSTREAM_ERROR"


class UpstreamTimeoutError(TransportError):
    """Raised when an upstream call exceeds SUPABASE_TIMEOUT_SECONDS."""
    kind = ErrorKind.TIMEOUT
    default_code = "UPSTREAM_TIMEOUT"


# =============================================================================
# Specific Errors
# =============================================================================

class ProfileNotFoundError(NotFoundError):
    """Raised when an authenticated identity has no application profile."""

    def __init__(self, user_id: str):
        super().__init__(
            message=f"Profile not found for user: {user_id}",
            code="PROFILE_NOT_FOUND",
            suggestion="Complete signup through the confirmation link so the profile is created",
            details={"user_id": user_id},
        )


class UserNotFoundError(NotFoundError):
    """Raised when no auth identity matches an email or id."""

    def __init__(self, identifier: str):
        super().__init__(
            message="User not found. Make sure they have signed up first.",
            code="USER_NOT_FOUND",
            suggestion="Ask the user to sign up before retrying",
            details={"user": identifier},
        )


_CLASS_FOR_KIND: dict[ErrorKind, type[LogbookException]] = {
    ErrorKind.VALIDATION: InviteValidationError,
    ErrorKind.AUTH: AuthenticationError,
    ErrorKind.PERMISSION: PermissionDeniedError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.RATE_LIMITED: RateLimitedError,
    ErrorKind.TRANSPORT: TransportError,
    ErrorKind.TIMEOUT: UpstreamTimeoutError,
}


def error_for_kind(kind: ErrorKind | None, message: str) -> LogbookException:
    """Rebuild an exception from a failed result so a route can raise it."""
    return _CLASS_FOR_KIND.get(kind, TransportError)(message)


# =============================================================================
# Exception Handlers
# =============================================================================

async def logbook_exception_handler(
    request: Request,
    exc: LogbookException
) -> JSONResponse:
    """
    Convert LogbookException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - kind: Error category
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")

    headers = None
    if isinstance(exc, RateLimitedError) and "retry_after" in exc.details:
        headers = {"Retry-After": str(exc.details["retry_after"])}

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Converts validation errors to user-friendly messages.
    """
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": str(exc)
        }
    )
