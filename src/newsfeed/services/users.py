"""User profiles and the follow graph.

Follow/unfollow invalidates both users' entity keys and the relationship
lists that changed (follower's following list, followee's followers list).
It does not touch the follower's newsfeed pages; the next feed read after
the short TTL expires reflects the new follow set.

Deleting a user cascades to their posts and follow edges in the store, so
the relation lists of every counterpart and the entity keys of every post
are invalidated as well. Other users' newsfeed pages may still list the
deleted posts until the short TTL expires, and pages of likes and comments
the user left on other posts age out with the default TTL.
"""

from __future__ import annotations

import logging

from newsfeed.cache.entity import EntityCaches
from newsfeed.core.model import Follow, User, UserCreate, UserUpdate
from newsfeed.errors import ConflictError, NotFoundError
from newsfeed.persistence.base import PostStore, UserStore
from newsfeed.services.base import BaseService, deadline

logger = logging.getLogger(__name__)


class UserService(BaseService):
    """Profiles, the follow graph and their cached relation lists."""

    def __init__(
        self,
        users: UserStore,
        posts: PostStore,
        caches: EntityCaches,
        timeout: float | None = None,
    ) -> None:
        super().__init__(caches, timeout)
        self.users = users
        self.posts = posts

    async def _load_user(self, user_id: int) -> User:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    @deadline("register")
    async def register(self, data: UserCreate) -> User:
        if await self.users.get_by_username(data.username) is not None:
            raise ConflictError(f"Username already exists: {data.username}")
        if await self.users.get_by_email(data.email) is not None:
            raise ConflictError(f"Email already exists: {data.email}")

        user = await self.users.create(data)
        logger.info(f"Registered user {user.id} ({user.username})")
        await self.caches.users.write(user, user.id)
        return user

    @deadline("get_profile")
    async def get_profile(self, user_id: int) -> User:
        return await self.cache_aside(
            self.caches.users, (user_id,), lambda: self._load_user(user_id)
        )

    @deadline("update_profile")
    async def update_profile(self, user_id: int, changes: UserUpdate) -> User:
        if changes.email is not None:
            holder = await self.users.get_by_email(changes.email)
            if holder is not None and holder.id != user_id:
                raise ConflictError(f"Email already exists: {changes.email}")

        user = await self.users.update(user_id, changes)
        if user is None:
            raise NotFoundError("User", user_id)
        await self.caches.users.write(user, user.id)
        return user

    @deadline("delete_profile")
    async def delete_profile(self, user_id: int) -> None:
        # Read what the cascade removes while it still exists
        followers = await self.users.followers(user_id)
        following = await self.users.following(user_id)
        post_ids = await self.posts.ids_by_user(user_id)

        if not await self.users.delete(user_id):
            raise NotFoundError("User", user_id)
        logger.info(f"Deleted user {user_id} with {len(post_ids)} posts")

        for follower in followers:
            await self._invalidate_edge(follower.id, user_id)
        for followee in following:
            await self._invalidate_edge(user_id, followee.id)
        for post_id in post_ids:
            await self.caches.posts.invalidate(post_id)
            await self.caches.posts.invalidate_family(post_id)

        await self.caches.users.invalidate(user_id)
        await self.caches.followers.invalidate(user_id)
        await self.caches.following.invalidate(user_id)
        await self.caches.user_posts.invalidate_family(user_id)
        await self.caches.newsfeed.invalidate_family(user_id)

    # -------------------------------------------------------------------------
    # Follow graph
    # -------------------------------------------------------------------------

    async def _invalidate_edge(self, follower_id: int, following_id: int) -> None:
        await self.caches.users.invalidate(follower_id)
        await self.caches.users.invalidate(following_id)
        await self.caches.following.invalidate(follower_id)
        await self.caches.followers.invalidate(following_id)

    @deadline("follow")
    async def follow(self, follower_id: int, following_id: int) -> Follow:
        await self._load_user(follower_id)
        await self._load_user(following_id)
        edge = await self.users.follow(follower_id, following_id)
        logger.info(f"User {follower_id} follows {following_id}")
        await self._invalidate_edge(follower_id, following_id)
        return edge

    @deadline("unfollow")
    async def unfollow(self, follower_id: int, following_id: int) -> None:
        if not await self.users.unfollow(follower_id, following_id):
            raise NotFoundError("Follow", f"{follower_id}->{following_id}")
        logger.info(f"User {follower_id} unfollowed {following_id}")
        await self._invalidate_edge(follower_id, following_id)

    @deadline("get_followers")
    async def get_followers(self, user_id: int) -> list[User]:
        return await self.cache_aside(
            self.caches.followers, (user_id,), lambda: self.users.followers(user_id)
        )

    @deadline("get_following")
    async def get_following(self, user_id: int) -> list[User]:
        return await self.cache_aside(
            self.caches.following, (user_id,), lambda: self.users.following(user_id)
        )
