"""Cache-aside services over the system of record.

Services own the consistency rules: which keys each write path
invalidates, which reads go through which cache family, and the deadline
every public operation runs under.
"""

from __future__ import annotations

from dataclasses import dataclass

from newsfeed.cache.entity import EntityCaches
from newsfeed.cache.redis import RedisCacheStore, get_redis
from newsfeed.cache.store import CacheStore
from newsfeed.persistence.base import CommentStore, LikeStore, PostStore, UserStore
from newsfeed.persistence.repositories import (
    CommentRepository,
    LikeRepository,
    PostRepository,
    UserRepository,
)
from newsfeed.services.base import BaseService, deadline
from newsfeed.services.engagement import CommentService, LikeService
from newsfeed.services.feed import FeedService, rank_feed
from newsfeed.services.users import UserService


@dataclass
class Services:
    """The full service set sharing one cache store."""

    caches: EntityCaches
    users: UserService
    feed: FeedService
    comments: CommentService
    likes: LikeService

    @classmethod
    def build(
        cls,
        users: UserStore,
        posts: PostStore,
        comments: CommentStore,
        likes: LikeStore,
        cache_store: CacheStore,
        timeout: float | None = None,
    ) -> Services:
        caches = EntityCaches.build(cache_store)
        return cls(
            caches=caches,
            users=UserService(users, posts, caches, timeout),
            feed=FeedService(posts, users, comments, likes, caches, timeout),
            comments=CommentService(comments, posts, users, caches, timeout),
            likes=LikeService(likes, posts, users, caches, timeout),
        )


async def create_services(timeout: float | None = None) -> Services:
    """Wire services to the SQLAlchemy repositories and Redis."""
    client = await get_redis()
    return Services.build(
        users=UserRepository(),
        posts=PostRepository(),
        comments=CommentRepository(),
        likes=LikeRepository(),
        cache_store=RedisCacheStore(client),
        timeout=timeout,
    )


__all__ = [
    "BaseService",
    "deadline",
    "rank_feed",
    "FeedService",
    "UserService",
    "CommentService",
    "LikeService",
    "Services",
    "create_services",
]
