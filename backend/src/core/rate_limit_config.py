"""
Rate limiting configuration and types.

This module contains the policy configuration for rate limiting - the "what" limits
to apply, separate from the "how" (enforcement logic in rate_limiter.py).

To adjust rate limits, modify RATE_LIMITS below.
"""
from dataclasses import dataclass
from enum import Enum


class RateLimitType(Enum):
    """Rate limit policy bucket selected by a request preset."""

    API = "api"
    AUTH = "auth"
    CHECKOUT = "checkout"


@dataclass
class RateLimitConfig:
    """Rate limit configuration for a single bucket."""

    max_requests: int
    window_seconds: int


@dataclass
class RateLimitResult:
    """Result of a rate limit check with all info needed for headers."""

    allowed: bool
    limit: int  # Max requests in current window
    remaining: int  # Requests remaining in current window
    reset: int  # Unix timestamp when window resets
    retry_after: int  # Seconds until retry allowed (0 if allowed)


# ---------------------------------------------------------------------------
# Rate Limit Policy Configuration
# ---------------------------------------------------------------------------
# Fixed one-hour windows, counted per client IP and bucket.

RATE_LIMITS: dict[RateLimitType, RateLimitConfig] = {
    # Order placement
    RateLimitType.CHECKOUT: RateLimitConfig(max_requests=5, window_seconds=3600),
    # General authenticated API traffic
    RateLimitType.API: RateLimitConfig(max_requests=100, window_seconds=3600),
    # Login, registration and other credential endpoints
    RateLimitType.AUTH: RateLimitConfig(max_requests=10, window_seconds=3600),
}
