"""Per-provider request rate limiting."""

from newshub.ratelimit.limiter import (
    RateLimiterProtocol,
    RateLimitWindow,
    WindowRateLimiter,
)


__all__ = [
    "RateLimitWindow",
    "RateLimiterProtocol",
    "WindowRateLimiter",
]
