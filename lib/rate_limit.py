# =============================================================================
# lib/rate_limit.py - Fixed-Window Rate Limiter (Redis)
# =============================================================================
# Limits how often one client may probe invite codes and tokens.
#
# Each (scope, client) pair gets a Redis counter that expires with the
# window: INCR on every attempt, EXPIRE when the counter is created.
# State lives in Redis, never in process memory, so every API worker shares
# the same budget.
#
# Usage:
#   limiter = InviteAttemptLimiter.from_url(settings.REDIS_URL)
#   status = await limiter.hit("invite-validate", client_ip)
#   if not status.allowed: ...
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

KEY_PREFIX = "logbook:ratelimit"


@dataclass(frozen=True)
class RateLimitStatus:
    """Outcome of one counted attempt."""
    allowed: bool
    remaining: int
    retry_after: int = 0


class InviteAttemptLimiter:
    """
    Fixed-window limiter backed by Redis counters.

    If Redis is unreachable the limiter fails open (the attempt is allowed
    and a warning is logged): rate limiting protects invite codes from
    guessing, it must not take signup down with it.
    """

    def __init__(self, redis_client, max_attempts: int, window_seconds: int):
        self.redis = redis_client
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    @classmethod
    def from_url(cls, url: str, max_attempts: int, window_seconds: int) -> "InviteAttemptLimiter":
        return cls(
            aioredis.from_url(url, decode_responses=True),
            max_attempts=max_attempts,
            window_seconds=window_seconds,
        )

    @staticmethod
    def key_for(scope: str, client_id: str) -> str:
        return f"{KEY_PREFIX}:{scope}:{client_id}"

    async def hit(self, scope: str, client_id: str) -> RateLimitStatus:
        """
        Count one attempt and report whether it is within budget.

        Args:
            scope: What is being limited (e.g. "invite-validate")
            client_id: Who is attempting (client IP)

        Returns:
            RateLimitStatus with remaining attempts and, when blocked,
            the seconds until the window resets
        """
        key = self.key_for(scope, client_id)
        try:
            count = await self.redis.incr(key)
            if count == 1:
                await self.redis.expire(key, self.window_seconds)

            if count > self.max_attempts:
                ttl = await self.redis.ttl(key)
                retry_after = ttl if ttl and ttl > 0 else self.window_seconds
                logger.warning(f"Rate limit exceeded for {scope} by {client_id}")
                return RateLimitStatus(allowed=False, remaining=0, retry_after=retry_after)

            return RateLimitStatus(allowed=True, remaining=self.max_attempts - count)

        except RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing attempt: {e}")
            return RateLimitStatus(allowed=True, remaining=self.max_attempts)

    async def reset(self, scope: str, client_id: str) -> None:
        """Clear the counter (e.g. after a successful signup)."""
        try:
            await self.redis.delete(self.key_for(scope, client_id))
        except RedisError as e:
            logger.warning(f"Could not reset rate limit counter: {e}")

    async def close(self) -> None:
        await self.redis.aclose()
