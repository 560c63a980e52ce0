"""Comments and likes.

Both write paths invalidate the whole collection family of the affected
post (every cached page, not just the page that changed) and never touch
newsfeed pages, which carry post summaries only. Likes also maintain the
long-lived "user liked post" flag; the flag is advisory and the store is
always consulted before inserting a like.
"""

from __future__ import annotations

import logging

from newsfeed.cache.entity import EntityCaches
from newsfeed.config import settings
from newsfeed.core.model import Comment, Like, Post
from newsfeed.errors import ConflictError, ForbiddenError, NotFoundError
from newsfeed.persistence.base import CommentStore, LikeStore, PostStore, UserStore
from newsfeed.services.base import BaseService, deadline

logger = logging.getLogger(__name__)


class EngagementService(BaseService):
    """Shared existence checks for comment and like services."""

    def __init__(
        self,
        posts: PostStore,
        users: UserStore,
        caches: EntityCaches,
        timeout: float | None = None,
    ) -> None:
        super().__init__(caches, timeout)
        self.posts = posts
        self.users = users

    async def _require_user(self, user_id: int) -> None:
        if await self.users.get(user_id) is None:
            raise NotFoundError("User", user_id)

    async def _require_post(self, post_id: int) -> Post:
        post = await self.posts.get(post_id)
        if post is None:
            raise NotFoundError("Post", post_id)
        return post


class CommentService(EngagementService):
    """Comments on posts; only the author may edit or delete a comment."""

    def __init__(
        self,
        comments: CommentStore,
        posts: PostStore,
        users: UserStore,
        caches: EntityCaches,
        timeout: float | None = None,
    ) -> None:
        super().__init__(posts, users, caches, timeout)
        self.comments = comments

    async def _owned_comment(self, comment_id: int, acting_user_id: int) -> Comment:
        comment = await self.comments.get(comment_id)
        if comment is None:
            raise NotFoundError("Comment", comment_id)
        if comment.user_id != acting_user_id:
            raise ForbiddenError("Comment", comment_id)
        return comment

    @deadline("create_comment")
    async def create_comment(self, post_id: int, user_id: int, content: str) -> Comment:
        await self._require_user(user_id)
        await self._require_post(post_id)
        comment = await self.comments.create(post_id, user_id, content)
        await self.caches.post_comments.invalidate_family(post_id)
        return comment

    @deadline("get_comment")
    async def get_comment(self, comment_id: int) -> Comment:
        comment = await self.comments.get(comment_id)
        if comment is None:
            raise NotFoundError("Comment", comment_id)
        return comment

    @deadline("get_post_comments")
    async def get_post_comments(
        self, post_id: int, page: int = 1, page_size: int = settings.default_page_size
    ) -> list[Comment]:
        offset, limit = self.page_bounds(page, page_size)
        return await self.cache_aside_page(
            self.caches.post_comments,
            (post_id, page),
            limit,
            lambda: self.comments.list_by_post(post_id, offset, limit),
        )

    @deadline("update_comment")
    async def update_comment(self, comment_id: int, acting_user_id: int, content: str) -> Comment:
        existing = await self._owned_comment(comment_id, acting_user_id)
        comment = await self.comments.update(comment_id, content)
        if comment is None:
            raise NotFoundError("Comment", comment_id)
        await self.caches.post_comments.invalidate_family(existing.post_id)
        return comment

    @deadline("delete_comment")
    async def delete_comment(self, comment_id: int, acting_user_id: int) -> None:
        existing = await self._owned_comment(comment_id, acting_user_id)
        if not await self.comments.delete(comment_id):
            raise NotFoundError("Comment", comment_id)
        await self.caches.post_comments.invalidate_family(existing.post_id)


class LikeService(EngagementService):
    """Likes, their cached pages and the per-user like-exists flag."""

    def __init__(
        self,
        likes: LikeStore,
        posts: PostStore,
        users: UserStore,
        caches: EntityCaches,
        timeout: float | None = None,
    ) -> None:
        super().__init__(posts, users, caches, timeout)
        self.likes = likes

    @deadline("like_post")
    async def like_post(self, post_id: int, user_id: int) -> Like:
        await self._require_user(user_id)
        await self._require_post(post_id)
        # The cached flag is advisory; the store decides
        if await self.likes.exists(post_id, user_id):
            raise ConflictError(f"Post {post_id} already liked by user {user_id}")

        like = await self.likes.create(post_id, user_id)
        await self.caches.like_exists.write(True, post_id, user_id)
        await self.caches.post_likes.invalidate_family(post_id)
        return like

    @deadline("unlike_post")
    async def unlike_post(self, post_id: int, user_id: int) -> None:
        if not await self.likes.delete(post_id, user_id):
            raise NotFoundError("Like", f"post {post_id} by user {user_id}")
        await self.caches.like_exists.write(False, post_id, user_id)
        await self.caches.post_likes.invalidate_family(post_id)

    @deadline("get_post_likes")
    async def get_post_likes(
        self, post_id: int, page: int = 1, page_size: int = settings.default_page_size
    ) -> list[Like]:
        offset, limit = self.page_bounds(page, page_size)
        return await self.cache_aside_page(
            self.caches.post_likes,
            (post_id, page),
            limit,
            lambda: self.likes.list_by_post(post_id, offset, limit),
        )

    @deadline("has_user_liked")
    async def has_user_liked(self, post_id: int, user_id: int) -> bool:
        return await self.cache_aside(
            self.caches.like_exists,
            (post_id, user_id),
            lambda: self.likes.exists(post_id, user_id),
        )

    @deadline("like_count")
    async def like_count(self, post_id: int) -> int:
        return await self.likes.count(post_id)
