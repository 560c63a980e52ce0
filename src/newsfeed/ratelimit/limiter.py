"""Per-identity token-bucket admission control.

One RateLimiter instance owns the key -> bucket mapping and is handed to
whatever handles requests (see RateLimitMiddleware). Buckets are created
lazily on first sight of a key. Lookups take no lock; inserting a new
bucket takes the exclusive lock and re-checks, so concurrent first sight
of one key always ends up sharing a single bucket.

The mapping is cleared wholesale by a periodic sweep. Every identity gets
a fresh burst allowance after each sweep; that reset is accepted in
exchange for bounded memory under churn of distinct identities.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable

from newsfeed.config import settings

logger = logging.getLogger(__name__)


class TokenBucket:
    """Bucket holding up to ``burst`` tokens, refilled at ``rate`` tokens/s.

    Starts full. Each admitted action consumes one token.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._updated = clock()
        self._lock = threading.Lock()

    @property
    def tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._updated = now

    def consume(self) -> bool:
        """Take one token if available."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False


class RateLimiter:
    """Mapping of identity key to TokenBucket with lazy creation.

    ``allow`` is safe to call from many threads and from the event loop.
    The periodic sweep runs as an asyncio task between ``start`` and
    ``stop``; ``sweep`` can also be called directly.
    """

    def __init__(
        self,
        rate: float | None = None,
        burst: int | None = None,
        sweep_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rate = settings.rate_limit_rate if rate is None else rate
        self.burst = settings.rate_limit_burst if burst is None else burst
        self.sweep_interval = (
            settings.rate_limit_sweep_interval if sweep_interval is None else sweep_interval
        )
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._running = False
        self._task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: str) -> bool:
        return key in self._buckets

    def allow(self, key: str) -> bool:
        """Consume one token from key's bucket; True if admitted."""
        if self.burst <= 0:
            return False
        allowed = self.bucket(key).consume()
        if not allowed:
            logger.debug(f"Rate limit exceeded for {key}")
        return allowed

    def bucket(self, key: str) -> TokenBucket:
        """Return key's bucket, creating it on first sight."""
        bucket = self._buckets.get(key)
        if bucket is not None:
            return bucket

        with self._lock:
            # Another caller may have inserted while we waited for the lock
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(self.rate, self.burst, self._clock)
                self._buckets[key] = bucket
            return bucket

    def sweep(self) -> int:
        """Drop every bucket. Returns how many were removed."""
        with self._lock:
            removed = len(self._buckets)
            self._buckets = {}
        logger.info(f"Rate limiter sweep removed {removed} buckets")
        return removed

    async def start(self) -> None:
        """Start the periodic sweep task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Started rate limiter sweep every {self.sweep_interval}s")

    async def stop(self) -> None:
        """Stop the periodic sweep task."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Stopped rate limiter sweep")

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.sweep_interval)
                self.sweep()
            except asyncio.CancelledError:
                break
