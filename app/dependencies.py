# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
# =============================================================================

from typing import Annotated

from fastapi import Depends, Request

from app.config import settings
from app.exceptions import RateLimitedError
from lib.rate_limit import InviteAttemptLimiter

_limiter: InviteAttemptLimiter | None = None


def get_limiter() -> InviteAttemptLimiter:
    """
    Get the process-wide invite attempt limiter.

    The Redis connection pool is created lazily on first use.
    """
    global _limiter
    if _limiter is None:
        _limiter = InviteAttemptLimiter.from_url(
            settings.REDIS_URL,
            max_attempts=settings.INVITE_VALIDATE_MAX_ATTEMPTS,
            window_seconds=settings.INVITE_VALIDATE_WINDOW_SECONDS,
        )
    return _limiter


async def close_limiter() -> None:
    """Release the limiter's Redis pool (application shutdown)."""
    global _limiter
    if _limiter is not None:
        await _limiter.close()
        _limiter = None


LimiterDep = Annotated[InviteAttemptLimiter, Depends(get_limiter)]


def client_ip(request: Request) -> str:
    """
    The caller's address, used to key rate limits.

    X-Forwarded-For is only read when TRUSTED_PROXY_HOPS is set, and then
    only the entry the outermost trusted proxy appended for its peer.
    Anything to the left of that came from the client and is ignored.

    Example (TRUSTED_PROXY_HOPS=1):
        X-Forwarded-For: 6.6.6.6, 203.0.113.7  ->  "203.0.113.7"
    """
    hops = settings.TRUSTED_PROXY_HOPS
    forwarded = request.headers.get("x-forwarded-for") if hops else None
    if forwarded:
        entries = [entry.strip() for entry in forwarded.split(",") if entry.strip()]
        if entries:
            return entries[max(len(entries) - hops, 0)]
    return request.client.host if request.client else "unknown"


def rate_limited(scope: str):
    """
    Dependency factory counting one invite attempt per request.

    Raises:
        RateLimitedError: 429 with Retry-After once the budget is spent
    """

    async def dependency(request: Request, limiter: LimiterDep) -> None:
        result = await limiter.hit(scope, client_ip(request))
        if not result.allowed:
            raise RateLimitedError(
                "Too many attempts. Please wait before trying again.",
                suggestion=f"Try again in {result.retry_after} seconds",
                details={"retry_after": result.retry_after},
            )

    return dependency
