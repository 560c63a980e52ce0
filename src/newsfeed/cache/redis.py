"""Redis cache store for the newsfeed core.

Provides async Redis operations behind the CacheStore contract.
Uses redis-py async client for connection pooling.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, cast

import redis.asyncio as redis
from redis.exceptions import RedisError

from newsfeed.config import settings
from newsfeed.errors import CacheUnavailableError

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Module-level connection pool
_redis_client: Redis | None = None

# Keys deleted per DEL round trip during pattern invalidation
SCAN_BATCH = 100


async def get_redis() -> Redis:
    """Get or create the Redis client.

    Uses connection pooling for efficient connection management.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            settings.redis_url,
            max_connections=settings.redis_pool_size,
            decode_responses=False,  # We're storing bytes
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class RedisCacheStore:
    """CacheStore backed by Redis.

    Every RedisError (connection refused, timeout, protocol error) is
    re-raised as CacheUnavailableError.
    """

    def __init__(self, client: Redis):
        self.client = client

    async def get(self, key: str) -> bytes | None:
        try:
            return cast(bytes | None, await self.client.get(key))
        except RedisError as e:
            raise CacheUnavailableError(f"GET {key} failed: {e}") from e

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        try:
            await self.client.setex(key, ttl, value)
        except RedisError as e:
            raise CacheUnavailableError(f"SETEX {key} failed: {e}") from e

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self.client.delete(*keys)
        except RedisError as e:
            raise CacheUnavailableError(f"DEL {', '.join(keys)} failed: {e}") from e

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern.

        Uses SCAN to avoid blocking on large keyspaces, deleting in batches.
        Returns the number of keys deleted.
        """
        deleted = 0
        batch: list[bytes | str] = []
        try:
            async for key in self.client.scan_iter(match=pattern, count=SCAN_BATCH):
                batch.append(key)
                if len(batch) >= SCAN_BATCH:
                    deleted += await self.client.delete(*batch)
                    batch.clear()
            if batch:
                deleted += await self.client.delete(*batch)
        except RedisError as e:
            raise CacheUnavailableError(f"pattern delete {pattern} failed: {e}") from e
        return deleted

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            await cast(Awaitable[bool], self.client.ping())
            return True
        except RedisError:
            logger.warning("Redis health check failed", exc_info=True)
            return False
