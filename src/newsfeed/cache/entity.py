"""Typed cache-aside wrappers, one per entity family.

EntityCache is generic over the cached value type. A family differs from
another only in how it derives keys and which TTL tier it uses; encoding,
decoding and failure handling are shared.

Failure contract:
- read() returns None on a miss, a backend failure, or an undecodable
  entry. Callers cannot tell these apart and fall back to the store.
- write() and invalidate*() never raise; backend failures are logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, TypeVar

import orjson
from pydantic import TypeAdapter

from newsfeed.cache.keys import COMMENTS, LIKES, NEWSFEED, POSTS, CacheKeys
from newsfeed.cache.store import CacheStore
from newsfeed.config import settings
from newsfeed.core.model import Comment, FeedPage, Like, Page, Post, User
from newsfeed.errors import CacheUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TTLTier(str, Enum):
    """TTL tiers chosen per family by volatility."""

    SHORT = "short"  # newsfeed pages
    DEFAULT = "default"  # single entities, per-entity collections
    LONG = "long"  # boolean like-exists flags

    @property
    def seconds(self) -> int:
        return {
            TTLTier.SHORT: settings.cache_ttl_short,
            TTLTier.DEFAULT: settings.cache_ttl_default,
            TTLTier.LONG: settings.cache_ttl_long,
        }[self]


class EntityCache(Generic[T]):
    """Read/write/invalidate wrapper over a CacheStore for one family."""

    def __init__(
        self,
        store: CacheStore,
        name: str,
        value_type: type[T] | object,
        key: Callable[..., str],
        tier: TTLTier = TTLTier.DEFAULT,
        pattern: Callable[[int], str] | None = None,
    ) -> None:
        self.store = store
        self.name = name
        self.tier = tier
        self.value_type = value_type
        self._key = key
        self._pattern = pattern
        self._adapter: TypeAdapter[T] = TypeAdapter(value_type)

    @property
    def ttl(self) -> int:
        return self.tier.seconds

    def key(self, *parts: int) -> str:
        return self._key(*parts)

    def encode(self, value: T) -> bytes:
        return orjson.dumps(self._adapter.dump_python(value, mode="json"))

    def decode(self, raw: bytes) -> T:
        return self._adapter.validate_python(orjson.loads(raw))

    async def read(self, *parts: int) -> T | None:
        """Return the cached value or None."""
        key = self._key(*parts)
        try:
            raw = await self.store.get(key)
        except CacheUnavailableError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if raw is None:
            logger.debug(f"Cache miss: {key}")
            return None
        try:
            return self.decode(raw)
        except ValueError as e:
            # orjson.JSONDecodeError and pydantic.ValidationError are both ValueErrors
            logger.warning(f"Discarding undecodable {self.name} entry {key}: {e}")
            return None

    async def write(self, value: T, *parts: int) -> None:
        """Store value under the key derived from parts with the family TTL."""
        key = self._key(*parts)
        try:
            await self.store.set(key, self.encode(value), self.ttl)
        except CacheUnavailableError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    async def invalidate(self, *parts: int) -> None:
        """Delete the single key derived from parts."""
        key = self._key(*parts)
        try:
            await self.store.delete(key)
        except CacheUnavailableError as e:
            logger.warning(f"Cache invalidation failed for {key}: {e}")

    async def invalidate_family(self, entity_id: int) -> int:
        """Delete every key of this family under entity_id (all pages).

        Returns the number of keys removed, 0 on failure.
        """
        if self._pattern is None:
            raise TypeError(f"{self.name} cache has no invalidation pattern")
        pattern = self._pattern(entity_id)
        try:
            deleted = await self.store.delete_pattern(pattern)
        except CacheUnavailableError as e:
            logger.warning(f"Cache pattern invalidation failed for {pattern}: {e}")
            return 0
        logger.debug(f"Invalidated {deleted} keys matching {pattern}")
        return deleted


@dataclass
class EntityCaches:
    """All entity cache families sharing one store."""

    store: CacheStore
    keys: CacheKeys
    users: EntityCache[User]
    posts: EntityCache[Post]
    user_posts: EntityCache[Page[Post]]
    newsfeed: EntityCache[FeedPage]
    post_comments: EntityCache[Page[Comment]]
    post_likes: EntityCache[Page[Like]]
    like_exists: EntityCache[bool]
    followers: EntityCache[list[User]]
    following: EntityCache[list[User]]

    @classmethod
    def build(cls, store: CacheStore, keys: CacheKeys | None = None) -> EntityCaches:
        keys = keys or CacheKeys()
        return cls(
            store=store,
            keys=keys,
            users=EntityCache(store, "user", User, keys.user),
            posts=EntityCache(
                store,
                "post",
                Post,
                keys.post,
                pattern=lambda post_id: keys.invalidation_pattern("post", post_id),
            ),
            user_posts=EntityCache(
                store,
                "user_posts",
                Page[Post],
                keys.user_posts,
                pattern=lambda user_id: keys.invalidation_pattern("user", user_id, POSTS),
            ),
            newsfeed=EntityCache(
                store,
                "newsfeed",
                FeedPage,
                keys.newsfeed,
                tier=TTLTier.SHORT,
                pattern=lambda user_id: keys.invalidation_pattern("user", user_id, NEWSFEED),
            ),
            post_comments=EntityCache(
                store,
                "post_comments",
                Page[Comment],
                keys.post_comments,
                pattern=lambda post_id: keys.invalidation_pattern("post", post_id, COMMENTS),
            ),
            post_likes=EntityCache(
                store,
                "post_likes",
                Page[Like],
                keys.post_likes,
                pattern=lambda post_id: keys.invalidation_pattern("post", post_id, LIKES),
            ),
            like_exists=EntityCache(
                store, "like_exists", bool, keys.like_exists, tier=TTLTier.LONG
            ),
            followers=EntityCache(store, "followers", list[User], keys.followers),
            following=EntityCache(store, "following", list[User], keys.following),
        )
