"""Posts and the personalized newsfeed.

The newsfeed is computed on read (fan-out on read): a user's feed is their
own posts plus the posts of everyone they follow, newest first, with ties
broken by the larger post id. Feed pages are cached with the short TTL and
are never invalidated by writes; a follower sees a new post once their
cached page expires.

Write-path invalidation owned here:
- create/update post: post entity key (written through), author's
  posts pages.
- delete post: post entity key and every derived post:{id}:* key
  (likes/comments pages, like flags), author's posts pages.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Set

from newsfeed.cache.entity import EntityCaches
from newsfeed.config import settings
from newsfeed.core.model import FeedPage, Post, PostDetail, User
from newsfeed.errors import ForbiddenError, NotFoundError
from newsfeed.persistence.base import CommentStore, LikeStore, PostStore, UserStore
from newsfeed.services.base import BaseService, deadline

logger = logging.getLogger(__name__)


def rank_feed(candidates: Iterable[Post], authors: Set[int]) -> list[Post]:
    """Order feed candidates for display.

    Drops posts not authored by a member of ``authors``, keeps one post
    per id, and sorts by (created_at, id) descending.
    """
    unique: dict[int, Post] = {}
    for post in candidates:
        if post.user_id in authors:
            unique.setdefault(post.id, post)
    return sorted(unique.values(), key=Post.sort_key, reverse=True)


class FeedService(BaseService):
    """Post CRUD, per-user post pages and the newsfeed."""

    def __init__(
        self,
        posts: PostStore,
        users: UserStore,
        comments: CommentStore,
        likes: LikeStore,
        caches: EntityCaches,
        timeout: float | None = None,
    ) -> None:
        super().__init__(caches, timeout)
        self.posts = posts
        self.users = users
        self.comments = comments
        self.likes = likes

    # -------------------------------------------------------------------------
    # Loaders (store reads that raise on absence)
    # -------------------------------------------------------------------------

    async def _load_user(self, user_id: int) -> User:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def _load_post(self, post_id: int) -> Post:
        post = await self.posts.get(post_id)
        if post is None:
            raise NotFoundError("Post", post_id)
        return post

    async def _owned_post(self, post_id: int, acting_user_id: int) -> Post:
        # Ownership is checked against the store, never a cached copy
        post = await self._load_post(post_id)
        if post.user_id != acting_user_id:
            raise ForbiddenError("Post", post_id)
        return post

    async def _following(self, user_id: int) -> list[User]:
        return await self.cache_aside(
            self.caches.following, (user_id,), lambda: self.users.following(user_id)
        )

    # -------------------------------------------------------------------------
    # Posts
    # -------------------------------------------------------------------------

    @deadline("create_post")
    async def create_post(self, user_id: int, content: str, image_url: str | None = None) -> Post:
        await self._load_user(user_id)
        post = await self.posts.create(user_id, content, image_url)
        logger.info(f"Created post {post.id} by user {user_id}")

        await self.caches.posts.write(post, post.id)
        await self.caches.user_posts.invalidate_family(user_id)
        return post

    @deadline("get_post")
    async def get_post(self, post_id: int) -> Post:
        return await self.cache_aside(
            self.caches.posts, (post_id,), lambda: self._load_post(post_id)
        )

    @deadline("get_post_detail")
    async def get_post_detail(
        self, post_id: int, page_size: int = settings.default_page_size
    ) -> PostDetail:
        """Post with the first page of its likes and comments attached."""
        self.page_bounds(1, page_size)
        post = await self.cache_aside(
            self.caches.posts, (post_id,), lambda: self._load_post(post_id)
        )
        return await self._attach(post, page_size)

    async def _attach(self, post: Post, page_size: int) -> PostDetail:
        likes = await self.cache_aside_page(
            self.caches.post_likes,
            (post.id, 1),
            page_size,
            lambda: self.likes.list_by_post(post.id, 0, page_size),
        )
        comments = await self.cache_aside_page(
            self.caches.post_comments,
            (post.id, 1),
            page_size,
            lambda: self.comments.list_by_post(post.id, 0, page_size),
        )
        return PostDetail.attach(post, likes, comments)

    @deadline("get_user_posts")
    async def get_user_posts(
        self, user_id: int, page: int = 1, page_size: int = settings.default_page_size
    ) -> list[Post]:
        offset, limit = self.page_bounds(page, page_size)
        return await self.cache_aside_page(
            self.caches.user_posts,
            (user_id, page),
            limit,
            lambda: self.posts.list_by_user(user_id, offset, limit),
        )

    @deadline("update_post")
    async def update_post(
        self, post_id: int, acting_user_id: int, content: str, image_url: str | None = None
    ) -> Post:
        existing = await self._owned_post(post_id, acting_user_id)
        post = await self.posts.update(post_id, content, image_url)
        if post is None:
            raise NotFoundError("Post", post_id)

        await self.caches.posts.write(post, post.id)
        await self.caches.user_posts.invalidate_family(existing.user_id)
        return post

    @deadline("delete_post")
    async def delete_post(self, post_id: int, acting_user_id: int) -> None:
        existing = await self._owned_post(post_id, acting_user_id)
        if not await self.posts.delete(post_id):
            raise NotFoundError("Post", post_id)
        logger.info(f"Deleted post {post_id} with its likes and comments")

        await self.caches.posts.invalidate(post_id)
        await self.caches.posts.invalidate_family(post_id)
        await self.caches.user_posts.invalidate_family(existing.user_id)

    # -------------------------------------------------------------------------
    # Newsfeed
    # -------------------------------------------------------------------------

    @deadline("get_newsfeed")
    async def get_newsfeed(
        self, user_id: int, page: int = 1, page_size: int = settings.default_page_size
    ) -> FeedPage:
        """Page ``page`` of user_id's newsfeed (post summaries).

        A cached page is returned unmodified; freshness is bounded by the
        short TTL only.
        """
        return await self._newsfeed(user_id, page, page_size)

    async def _newsfeed(self, user_id: int, page: int, page_size: int) -> FeedPage:
        offset, limit = self.page_bounds(page, page_size)

        # Key is (user, page); a page cached under another page_size is recomputed
        cached = await self.caches.newsfeed.read(user_id, page)
        if cached is not None and cached.page_size == page_size:
            return cached

        feed = await self._compute_feed(user_id, page, offset, limit)
        await self.caches.newsfeed.write(feed, user_id, page)
        return feed

    async def _compute_feed(self, user_id: int, page: int, offset: int, limit: int) -> FeedPage:
        await self.cache_aside(self.caches.users, (user_id,), lambda: self._load_user(user_id))

        authors = {user_id} | {user.id for user in await self._following(user_id)}
        # The newest offset+limit posts across all authors cover this page
        candidates = await self.posts.list_by_authors(authors, offset + limit)
        ranked = rank_feed(candidates, authors)

        logger.debug(
            f"Computed feed for user {user_id} page {page}: "
            f"{len(authors)} authors, {len(candidates)} candidates"
        )
        return FeedPage(
            user_id=user_id,
            page=page,
            page_size=limit,
            posts=ranked[offset : offset + limit],
        )

    @deadline("get_newsfeed_details")
    async def get_newsfeed_details(
        self, user_id: int, page: int = 1, page_size: int = settings.default_page_size
    ) -> list[PostDetail]:
        """Newsfeed page with likes and comments attached to every post.

        The feed page itself comes from the feed cache; each post's likes
        and comments are read independently through their own caches.
        """
        feed = await self._newsfeed(user_id, page, page_size)
        return [await self._attach(post, settings.default_page_size) for post in feed.posts]
