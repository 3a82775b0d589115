"""
Rate limiting enforcement.

This module contains the enforcement logic - the "how" of rate limiting.
For configuration (limits per bucket), see rate_limit_config.py.

Two counter stores are available:
- MemoryRateLimitStore: process-local fixed windows (default, single instance)
- RedisRateLimitStore: shared fixed windows via a Lua script, fails open
"""
import logging
import math
import time
from collections.abc import Callable
from typing import Protocol

from fastapi import Request

from core.rate_limit_config import RateLimitResult, RateLimitType
from core.redis import RedisClient

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Resolve the client address used as the rate limit identity.

    Prefers the first X-Forwarded-For hop, then X-Real-IP, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimitStore(Protocol):
    """Counter backend: counts one request against a fixed window."""

    async def hit(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        """Count a request and report whether it fits in the window."""
        ...


class MemoryRateLimitStore:
    """
    Process-local fixed-window counters.

    An expired window is replaced by the request that finds it. Expired keys
    that are never requested again are dropped by an occasional prune.
    """

    PRUNE_EVERY = 1000

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._windows: dict[str, tuple[int, float]] = {}  # key -> (count, reset_at)
        self._hits_since_prune = 0

    async def hit(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        """Count a request against `key`; denied requests are not counted."""
        now = self._clock()
        self._maybe_prune(now)

        entry = self._windows.get(key)
        if entry is None or now > entry[1]:
            reset_at = now + window_seconds
            self._windows[key] = (1, reset_at)
            return RateLimitResult(
                allowed=True,
                limit=max_requests,
                remaining=max(0, max_requests - 1),
                reset=int(reset_at),
                retry_after=0,
            )

        count, reset_at = entry
        if count >= max_requests:
            return RateLimitResult(
                allowed=False,
                limit=max_requests,
                remaining=0,
                reset=int(reset_at),
                retry_after=max(1, math.ceil(reset_at - now)),
            )

        count += 1
        self._windows[key] = (count, reset_at)
        return RateLimitResult(
            allowed=True,
            limit=max_requests,
            remaining=max(0, max_requests - count),
            reset=int(reset_at),
            retry_after=0,
        )

    def _maybe_prune(self, now: float) -> None:
        self._hits_since_prune += 1
        if self._hits_since_prune < self.PRUNE_EVERY:
            return
        self._hits_since_prune = 0
        expired = [key for key, (_, reset_at) in self._windows.items() if now > reset_at]
        for key in expired:
            del self._windows[key]

    def clear(self) -> None:
        """Drop all counters."""
        self._windows.clear()


class RedisRateLimitStore:
    """Shared fixed-window counters in Redis. Allows the request if Redis is unavailable."""

    def __init__(self, redis_client: RedisClient) -> None:
        self._redis = redis_client

    async def hit(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        """Count a request using the fixed window Lua script."""
        now = int(time.time())
        result = None
        if self._redis.is_connected:
            result = await self._redis.eval_fixed_window(
                key=key,
                max_requests=max_requests,
                window_seconds=window_seconds,
            )

        if result is None:
            # Redis unavailable - fail open
            logger.warning("redis_unavailable", extra={"operation": "rate_limit"})
            return RateLimitResult(
                allowed=True,
                limit=max_requests,
                remaining=max_requests,
                reset=0,
                retry_after=0,
            )

        allowed, remaining, ttl, retry_after = result
        return RateLimitResult(
            allowed=bool(allowed),
            limit=max_requests,
            remaining=max(0, remaining),
            reset=now + ttl if ttl > 0 else now + window_seconds,
            retry_after=max(0, retry_after) if not allowed else 0,
        )


class RateLimiter:
    """Applies the RATE_LIMITS policy table to a counter store."""

    def __init__(self, store: RateLimitStore, enabled: bool = True) -> None:
        self.store = store
        self.enabled = enabled

    async def check(self, limit_type: RateLimitType, client_id: str) -> RateLimitResult:
        """
        Check if a request from `client_id` is allowed in the given bucket.

        Returns RateLimitResult with allowed status and header values.
        """
        # Import at call time so tests can monkeypatch rate_limit_config.RATE_LIMITS
        from core.rate_limit_config import RATE_LIMITS

        config = RATE_LIMITS.get(limit_type)
        if not self.enabled or config is None:
            return RateLimitResult(allowed=True, limit=0, remaining=0, reset=0, retry_after=0)

        key = f"rate:{limit_type.value}:{client_id}"
        result = await self.store.hit(key, config.max_requests, config.window_seconds)
        if not result.allowed:
            logger.warning(
                "rate_limit_exceeded",
                extra={
                    "client_id": client_id,
                    "limit_type": limit_type.value,
                    "retry_after": result.retry_after,
                },
            )
        return result
