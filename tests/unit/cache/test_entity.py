"""Tests for entity cache families."""

from datetime import UTC, datetime

import pytest

from newsfeed.cache.entity import EntityCache, EntityCaches, TTLTier
from newsfeed.cache.store import MemoryCacheStore
from newsfeed.config import settings
from newsfeed.core.model import FeedPage, Page, Post, User

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def make_user(user_id: int = 1) -> User:
    return User(
        id=user_id,
        username=f"user{user_id}",
        email=f"user{user_id}@example.com",
        password_hash="hash",
        created_at=NOW,
        updated_at=NOW,
    )


def make_post(post_id: int = 1, user_id: int = 1) -> Post:
    return Post(id=post_id, user_id=user_id, content="hello", created_at=NOW, updated_at=NOW)


class TestTTLTier:
    """Test TTL tiers."""

    def test_tiers_read_settings(self) -> None:
        """Tier seconds come from configuration."""
        assert TTLTier.SHORT.seconds == settings.cache_ttl_short
        assert TTLTier.DEFAULT.seconds == settings.cache_ttl_default
        assert TTLTier.LONG.seconds == settings.cache_ttl_long

    def test_default_tier_values(self) -> None:
        """Defaults are 5, 15 and 60 minutes."""
        assert (settings.cache_ttl_short, settings.cache_ttl_default, settings.cache_ttl_long) == (
            300,
            900,
            3600,
        )


class TestEntityCache:
    """Test the generic read/write/invalidate wrapper."""

    @pytest.mark.asyncio
    async def test_write_then_read(self, caches: EntityCaches) -> None:
        """Written value reads back equal."""
        user = make_user()
        await caches.users.write(user, user.id)
        assert await caches.users.read(user.id) == user

    @pytest.mark.asyncio
    async def test_read_miss_returns_none(self, caches: EntityCaches) -> None:
        """Absent key reads as None."""
        assert await caches.users.read(404) is None

    @pytest.mark.asyncio
    async def test_invalidate_forces_miss(self, caches: EntityCaches) -> None:
        """Read after invalidate is a miss."""
        user = make_user()
        await caches.users.write(user, user.id)
        await caches.users.invalidate(user.id)
        assert await caches.users.read(user.id) is None

    @pytest.mark.asyncio
    async def test_write_uses_family_ttl(
        self, caches: EntityCaches, cache_store: MemoryCacheStore
    ) -> None:
        """Each family writes with its tier TTL."""
        await caches.users.write(make_user(), 1)
        await caches.newsfeed.write(FeedPage(user_id=1, page=1, page_size=10), 1, 1)
        await caches.like_exists.write(True, 1, 1)

        assert cache_store.ttl("user:1") == settings.cache_ttl_default
        assert cache_store.ttl("user:1:newsfeed:page:1") == settings.cache_ttl_short
        assert cache_store.ttl("post:1:like:1") == settings.cache_ttl_long

    @pytest.mark.asyncio
    async def test_entry_expires(self, caches: EntityCaches, clock) -> None:
        """Entry is a miss once its TTL elapses."""
        await caches.posts.write(make_post(), 1)
        clock.advance(settings.cache_ttl_default)
        assert await caches.posts.read(1) is None

    @pytest.mark.asyncio
    async def test_false_flag_is_a_hit(self, caches: EntityCaches) -> None:
        """A cached False is returned, not treated as a miss."""
        await caches.like_exists.write(False, 1, 2)
        assert await caches.like_exists.read(1, 2) is False

    @pytest.mark.asyncio
    async def test_page_family_round_trip(self, caches: EntityCaches) -> None:
        """Collection families cache pages tagged with their size."""
        page = Page[Post](page_size=2, items=[make_post(2), make_post(1)])
        await caches.user_posts.write(page, 1, 1)

        cached = await caches.user_posts.read(1, 1)

        assert cached == page
        assert cached.page_size == 2

    @pytest.mark.asyncio
    async def test_bare_list_entry_is_a_miss(
        self, caches: EntityCaches, cache_store: MemoryCacheStore
    ) -> None:
        """A page entry without its size reads as a miss."""
        await cache_store.set("user:1:posts:page:1", b"[]", 60)
        assert await caches.user_posts.read(1, 1) is None

    @pytest.mark.asyncio
    async def test_undecodable_entry_is_a_miss(
        self, caches: EntityCaches, cache_store: MemoryCacheStore
    ) -> None:
        """Garbage bytes under a key read as a miss."""
        await cache_store.set("user:1", b"not json", 60)
        assert await caches.users.read(1) is None

    @pytest.mark.asyncio
    async def test_incompatible_entry_is_a_miss(
        self, caches: EntityCaches, cache_store: MemoryCacheStore
    ) -> None:
        """Valid JSON with the wrong shape reads as a miss."""
        await cache_store.set("user:1", b'{"id": 1, "unexpected": true}', 60)
        assert await caches.users.read(1) is None

    @pytest.mark.asyncio
    async def test_invalidate_family_removes_all_pages(
        self, caches: EntityCaches, cache_store: MemoryCacheStore
    ) -> None:
        """Family invalidation deletes every page of the collection."""
        for page in (1, 2, 3):
            await caches.user_posts.write(Page[Post](page_size=10, items=[make_post()]), 1, page)
        await caches.newsfeed.write(FeedPage(user_id=1, page=1, page_size=10), 1, 1)

        deleted = await caches.user_posts.invalidate_family(1)

        assert deleted == 3
        assert cache_store.keys() == ["user:1:newsfeed:page:1"]

    @pytest.mark.asyncio
    async def test_invalidate_family_requires_pattern(self, caches: EntityCaches) -> None:
        """Families without a pattern refuse bulk invalidation."""
        with pytest.raises(TypeError):
            await caches.followers.invalidate_family(1)


class TestEntityCacheDegradation:
    """Cache outages degrade to misses."""

    @pytest.mark.asyncio
    async def test_read_failure_is_a_miss(self, failing_cache_store) -> None:
        """Backend failure on read returns None."""
        cache = EntityCache(failing_cache_store, "user", User, lambda uid: f"user:{uid}")
        assert await cache.read(1) is None

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self, failing_cache_store) -> None:
        """Backend failure on write does not raise."""
        cache = EntityCache(failing_cache_store, "user", User, lambda uid: f"user:{uid}")
        await cache.write(make_user(), 1)

    @pytest.mark.asyncio
    async def test_invalidate_failures_are_swallowed(self, failing_cache_store) -> None:
        """Backend failure on invalidation does not raise."""
        caches = EntityCaches.build(failing_cache_store)
        await caches.posts.invalidate(1)
        assert await caches.posts.invalidate_family(1) == 0
