"""Redis connection pool and fixed-window rate limiter.

The rate limiter backs login throttling: a key may be hit at most
``max_attempts`` times per ``window_seconds`` before requests are refused.
"""

from __future__ import annotations

import redis.asyncio as aioredis
import structlog

from src.app.config import get_settings

logger = structlog.get_logger(__name__)

# ── Module-level Redis pool (lazy init) ─────────────────────────────────────

_redis_pool: aioredis.Redis | None = None


def get_redis_pool() -> aioredis.Redis:
    """Get or create the Redis connection pool singleton."""
    global _redis_pool
    if _redis_pool is None:
        settings = get_settings()
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.close()
        _redis_pool = None


# ── Rate Limiter ────────────────────────────────────────────────────────────


class RateLimiter:
    """Fixed-window attempt counter stored in Redis.

    Each key lives under ``rl:{scope}:{identifier}`` and expires when its
    window closes, so counters never need explicit cleanup.

    Args:
        redis_client: Async Redis client (decode_responses=True).
        scope: Namespace for the counted action, e.g. "login".
        max_attempts: Attempts allowed per window.
        window_seconds: Window length in seconds.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        scope: str,
        max_attempts: int = 5,
        window_seconds: int = 900,
    ) -> None:
        self._redis = redis_client
        self._scope = scope
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    def _key(self, identifier: str) -> str:
        return f"rl:{self._scope}:{identifier.lower()}"

    async def hit(self, identifier: str) -> bool:
        """Record one attempt. Returns False once the window's budget is spent."""
        key = self._key(identifier)
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, self.window_seconds)
        if count > self.max_attempts:
            logger.warning(
                "rate_limit.exceeded",
                scope=self._scope,
                attempts=count,
                max_attempts=self.max_attempts,
            )
            return False
        return True

    async def retry_after(self, identifier: str) -> int:
        """Seconds until the identifier's window resets (0 if no window is open)."""
        ttl = await self._redis.ttl(self._key(identifier))
        return max(int(ttl), 0)

    async def reset(self, identifier: str) -> None:
        """Clear the counter, e.g. after a successful login."""
        await self._redis.delete(self._key(identifier))
