"""Cache layer for the newsfeed core.

Provides Redis caching with the cache-aside pattern:
- Deterministic key schema with per-family prefixes for bulk invalidation
- One generic typed wrapper per entity family
- Three TTL tiers chosen by volatility
- Cache failures degrade to misses, never to errors
"""

from newsfeed.cache.entity import EntityCache, EntityCaches, TTLTier
from newsfeed.cache.keys import CacheKeys
from newsfeed.cache.redis import RedisCacheStore, close_redis, get_redis
from newsfeed.cache.store import CacheStore, MemoryCacheStore

__all__ = [
    "CacheKeys",
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "get_redis",
    "close_redis",
    "EntityCache",
    "EntityCaches",
    "TTLTier",
]
