"""Rate limiting middleware.

Admits or rejects each request through a shared RateLimiter. Requests are
keyed by the authenticated user id when an upstream authentication layer
has set ``request.state.user_id``, otherwise by client IP.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from newsfeed.config import settings
from newsfeed.errors import Message, MessageType, Result
from newsfeed.ratelimit.limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Rate limiting configuration."""

    # Path prefixes to bypass (health checks)
    bypass_prefixes: list[str] = field(default_factory=lambda: ["/health"])
    # IPs to bypass (internal services)
    bypass_ips: list[str] = field(default_factory=list)
    # Seconds suggested to rejected clients
    retry_after: int = 1


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Token-bucket admission per user or IP.

    The limiter is passed in, not created here, so the same instance (and
    its sweep task) can be owned by application startup/shutdown.
    """

    def __init__(self, app, limiter: RateLimiter, config: RateLimitConfig | None = None):
        super().__init__(app)
        self.limiter = limiter
        self.config = config or RateLimitConfig()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Apply rate limiting to request."""
        path = request.url.path
        if any(path.startswith(prefix) for prefix in self.config.bypass_prefixes):
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        if client_ip in self.config.bypass_ips:
            return await call_next(request)

        key = self._get_rate_limit_key(request)
        if not self.limiter.allow(key):
            return self._reject()

        return await call_next(request)

    def _reject(self) -> JSONResponse:
        result = Result(
            messages=[
                Message(
                    code="TooManyRequests",
                    messageType=MessageType.ERROR,
                    text="Rate limit exceeded. Please retry later.",
                )
            ]
        )
        return JSONResponse(
            status_code=429,
            content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
            headers={"Retry-After": str(self.config.retry_after)},
        )

    def _get_rate_limit_key(self, request: Request) -> str:
        """Authenticated user id if known, else client IP."""
        user_id = getattr(request.state, "user_id", None)
        if user_id is not None:
            return f"user:{user_id}"
        return f"ip:{self._get_client_ip(request)}"

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP, handling proxies."""
        # X-Forwarded-For: first entry is the original client
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"


def add_rate_limiting(
    app, limiter: RateLimiter | None = None, config: RateLimitConfig | None = None
) -> RateLimiter | None:
    """Install RateLimitMiddleware on app if rate limiting is enabled.

    Returns the limiter in use so the caller can start and stop its sweep
    alongside the application lifespan, or None when disabled.
    """
    if not settings.enable_rate_limiting:
        logger.info("Rate limiting disabled")
        return None
    if limiter is None:
        limiter = RateLimiter()
    app.add_middleware(RateLimitMiddleware, limiter=limiter, config=config)
    return limiter
