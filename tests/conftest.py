"""Global pytest configuration and fixtures.

Provides in-memory system-of-record fakes with call counters, a manual
clock for TTL and token-bucket tests, and a fully wired service set over
a MemoryCacheStore.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

import pytest

from newsfeed.cache.entity import EntityCaches
from newsfeed.cache.keys import CacheKeys
from newsfeed.cache.store import MemoryCacheStore
from newsfeed.core.model import Comment, Follow, Like, Post, User, UserCreate, UserUpdate
from newsfeed.errors import CacheUnavailableError, ConflictError
from newsfeed.services import Services

EPOCH = datetime(2026, 1, 1, tzinfo=UTC)


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUserStore:
    def __init__(self) -> None:
        self.users: dict[int, User] = {}
        self.edges: set[tuple[int, int]] = set()
        self.calls: Counter[str] = Counter()
        self._next_id = 1

    def add(self, username: str) -> User:
        user = User(
            id=self._next_id,
            username=username,
            email=f"{username}@example.com",
            password_hash="x",
            created_at=EPOCH,
            updated_at=EPOCH,
        )
        self.users[user.id] = user
        self._next_id += 1
        return user

    async def create(self, data: UserCreate) -> User:
        self.calls["create"] += 1
        user = User(id=self._next_id, created_at=EPOCH, updated_at=EPOCH, **data.model_dump())
        self.users[user.id] = user
        self._next_id += 1
        return user

    async def get(self, user_id: int) -> User | None:
        self.calls["get"] += 1
        return self.users.get(user_id)

    async def get_by_username(self, username: str) -> User | None:
        return next((u for u in self.users.values() if u.username == username), None)

    async def get_by_email(self, email: str) -> User | None:
        return next((u for u in self.users.values() if u.email == email), None)

    async def update(self, user_id: int, changes: UserUpdate) -> User | None:
        user = self.users.get(user_id)
        if user is None:
            return None
        user = user.model_copy(update=changes.model_dump(exclude_none=True))
        self.users[user_id] = user
        return user

    async def delete(self, user_id: int) -> bool:
        self.edges = {(a, b) for a, b in self.edges if user_id not in (a, b)}
        return self.users.pop(user_id, None) is not None

    async def followers(self, user_id: int) -> list[User]:
        self.calls["followers"] += 1
        return [self.users[a] for a, b in sorted(self.edges) if b == user_id]

    async def following(self, user_id: int) -> list[User]:
        self.calls["following"] += 1
        return [self.users[b] for a, b in sorted(self.edges) if a == user_id]

    async def follow(self, follower_id: int, following_id: int) -> Follow:
        self.edges.add((follower_id, following_id))
        return Follow(follower_id=follower_id, following_id=following_id, created_at=EPOCH)

    async def unfollow(self, follower_id: int, following_id: int) -> bool:
        if (follower_id, following_id) not in self.edges:
            return False
        self.edges.discard((follower_id, following_id))
        return True


class FakePostStore:
    def __init__(self, comments: FakeCommentStore, likes: FakeLikeStore) -> None:
        self.posts: dict[int, Post] = {}
        self.calls: Counter[str] = Counter()
        self._comments = comments
        self._likes = likes
        self._next_id = 1
        self._tick = 0

    def seed(self, user_id: int, at: datetime | None = None, post_id: int | None = None) -> Post:
        """Insert a post directly, with an explicit timestamp and id if given."""
        if at is None:
            self._tick += 1
            at = EPOCH + timedelta(seconds=self._tick)
        if post_id is None:
            post_id = self._next_id
        self._next_id = max(self._next_id, post_id + 1)
        post = Post(
            id=post_id,
            user_id=user_id,
            content=f"post {post_id}",
            created_at=at,
            updated_at=at,
        )
        self.posts[post.id] = post
        return post

    async def create(self, user_id: int, content: str, image_url: str | None = None) -> Post:
        self.calls["create"] += 1
        post = self.seed(user_id)
        post = post.model_copy(update={"content": content, "image_url": image_url})
        self.posts[post.id] = post
        return post

    async def get(self, post_id: int) -> Post | None:
        self.calls["get"] += 1
        return self.posts.get(post_id)

    async def list_by_user(self, user_id: int, offset: int, limit: int) -> list[Post]:
        self.calls["list_by_user"] += 1
        owned = [p for p in self.posts.values() if p.user_id == user_id]
        owned.sort(key=Post.sort_key, reverse=True)
        return owned[offset : offset + limit]

    async def ids_by_user(self, user_id: int) -> list[int]:
        return [p.id for p in self.posts.values() if p.user_id == user_id]

    async def list_by_authors(self, author_ids: Iterable[int], limit: int) -> list[Post]:
        self.calls["list_by_authors"] += 1
        authors = set(author_ids)
        matched = [p for p in self.posts.values() if p.user_id in authors]
        matched.sort(key=Post.sort_key, reverse=True)
        return matched[:limit]

    async def update(self, post_id: int, content: str, image_url: str | None = None) -> Post | None:
        post = self.posts.get(post_id)
        if post is None:
            return None
        post = post.model_copy(update={"content": content, "image_url": image_url})
        self.posts[post_id] = post
        return post

    async def delete(self, post_id: int) -> bool:
        self._likes.likes = {k: v for k, v in self._likes.likes.items() if k[0] != post_id}
        self._comments.comments = {
            k: v for k, v in self._comments.comments.items() if v.post_id != post_id
        }
        return self.posts.pop(post_id, None) is not None


class FakeCommentStore:
    def __init__(self) -> None:
        self.comments: dict[int, Comment] = {}
        self.calls: Counter[str] = Counter()
        self._next_id = 1

    async def create(self, post_id: int, user_id: int, content: str) -> Comment:
        at = EPOCH + timedelta(seconds=self._next_id)
        comment = Comment(
            id=self._next_id,
            post_id=post_id,
            user_id=user_id,
            content=content,
            created_at=at,
            updated_at=at,
        )
        self.comments[comment.id] = comment
        self._next_id += 1
        return comment

    async def get(self, comment_id: int) -> Comment | None:
        return self.comments.get(comment_id)

    async def list_by_post(self, post_id: int, offset: int, limit: int) -> list[Comment]:
        self.calls["list_by_post"] += 1
        matched = [c for c in self.comments.values() if c.post_id == post_id]
        matched.sort(key=lambda c: (c.created_at, c.id), reverse=True)
        return matched[offset : offset + limit]

    async def update(self, comment_id: int, content: str) -> Comment | None:
        comment = self.comments.get(comment_id)
        if comment is None:
            return None
        comment = comment.model_copy(update={"content": content})
        self.comments[comment_id] = comment
        return comment

    async def delete(self, comment_id: int) -> bool:
        return self.comments.pop(comment_id, None) is not None


class FakeLikeStore:
    def __init__(self) -> None:
        self.likes: dict[tuple[int, int], Like] = {}
        self.calls: Counter[str] = Counter()
        self._next_id = 1

    async def create(self, post_id: int, user_id: int) -> Like:
        if (post_id, user_id) in self.likes:
            raise ConflictError(f"Post {post_id} already liked by user {user_id}")
        like = Like(
            id=self._next_id,
            post_id=post_id,
            user_id=user_id,
            created_at=EPOCH + timedelta(seconds=self._next_id),
        )
        self.likes[(post_id, user_id)] = like
        self._next_id += 1
        return like

    async def delete(self, post_id: int, user_id: int) -> bool:
        return self.likes.pop((post_id, user_id), None) is not None

    async def list_by_post(self, post_id: int, offset: int, limit: int) -> list[Like]:
        self.calls["list_by_post"] += 1
        matched = [like for (pid, _), like in self.likes.items() if pid == post_id]
        matched.sort(key=lambda like: (like.created_at, like.id), reverse=True)
        return matched[offset : offset + limit]

    async def exists(self, post_id: int, user_id: int) -> bool:
        self.calls["exists"] += 1
        return (post_id, user_id) in self.likes

    async def count(self, post_id: int) -> int:
        return sum(1 for pid, _ in self.likes if pid == post_id)


class FailingCacheStore:
    """Cache store whose backend is always down."""

    async def get(self, key: str) -> bytes | None:
        raise CacheUnavailableError(f"connection refused reading {key}")

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        raise CacheUnavailableError(f"connection refused writing {key}")

    async def delete(self, *keys: str) -> None:
        raise CacheUnavailableError("connection refused")

    async def delete_pattern(self, pattern: str) -> int:
        raise CacheUnavailableError("connection refused")

    async def health_check(self) -> bool:
        return False


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def cache_store(clock: ManualClock) -> MemoryCacheStore:
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def keys() -> CacheKeys:
    return CacheKeys(namespace="")


@pytest.fixture
def caches(cache_store: MemoryCacheStore, keys: CacheKeys) -> EntityCaches:
    return EntityCaches.build(cache_store, keys)


@pytest.fixture
def user_store() -> FakeUserStore:
    return FakeUserStore()


@pytest.fixture
def comment_store() -> FakeCommentStore:
    return FakeCommentStore()


@pytest.fixture
def like_store() -> FakeLikeStore:
    return FakeLikeStore()


@pytest.fixture
def post_store(comment_store: FakeCommentStore, like_store: FakeLikeStore) -> FakePostStore:
    return FakePostStore(comment_store, like_store)


@pytest.fixture
def failing_cache_store() -> FailingCacheStore:
    return FailingCacheStore()


@pytest.fixture
def services(
    user_store: FakeUserStore,
    post_store: FakePostStore,
    comment_store: FakeCommentStore,
    like_store: FakeLikeStore,
    cache_store: MemoryCacheStore,
) -> Services:
    return Services.build(
        users=user_store,
        posts=post_store,
        comments=comment_store,
        likes=like_store,
        cache_store=cache_store,
    )


@pytest.fixture
def degraded_services(
    user_store: FakeUserStore,
    post_store: FakePostStore,
    comment_store: FakeCommentStore,
    like_store: FakeLikeStore,
    failing_cache_store: FailingCacheStore,
) -> Services:
    """Services whose cache backend fails every call."""
    return Services.build(
        users=user_store,
        posts=post_store,
        comments=comment_store,
        likes=like_store,
        cache_store=failing_cache_store,
    )
