"""Per-identity token-bucket rate limiting."""

from newsfeed.ratelimit.limiter import RateLimiter, TokenBucket
from newsfeed.ratelimit.middleware import RateLimitConfig, RateLimitMiddleware, add_rate_limiting

__all__ = [
    "RateLimiter",
    "TokenBucket",
    "RateLimitConfig",
    "RateLimitMiddleware",
    "add_rate_limiting",
]
