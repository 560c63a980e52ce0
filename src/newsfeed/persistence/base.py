"""System-of-record contracts.

Services depend on these protocols only; the SQLAlchemy repositories in
``newsfeed.persistence.repositories`` are the production implementation.
Every method returns domain models and reports absence with None/False,
leaving NotFound decisions to the services.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from newsfeed.core.model import Comment, Follow, Like, Post, User, UserCreate, UserUpdate


class UserStore(Protocol):
    async def create(self, data: UserCreate) -> User: ...

    async def get(self, user_id: int) -> User | None: ...

    async def get_by_username(self, username: str) -> User | None: ...

    async def get_by_email(self, email: str) -> User | None: ...

    async def update(self, user_id: int, changes: UserUpdate) -> User | None: ...

    async def delete(self, user_id: int) -> bool: ...

    async def followers(self, user_id: int) -> list[User]: ...

    async def following(self, user_id: int) -> list[User]: ...

    async def follow(self, follower_id: int, following_id: int) -> Follow:
        """Create the edge and return it; an existing edge is left untouched."""
        ...

    async def unfollow(self, follower_id: int, following_id: int) -> bool: ...


class PostStore(Protocol):
    async def create(self, user_id: int, content: str, image_url: str | None = None) -> Post: ...

    async def get(self, post_id: int) -> Post | None: ...

    async def list_by_user(self, user_id: int, offset: int, limit: int) -> list[Post]:
        """Posts authored by user_id, newest first."""
        ...

    async def list_by_authors(self, author_ids: Iterable[int], limit: int) -> list[Post]:
        """The ``limit`` newest posts authored by any of author_ids."""
        ...

    async def ids_by_user(self, user_id: int) -> list[int]:
        """Ids of every post authored by user_id."""
        ...

    async def update(
        self, post_id: int, content: str, image_url: str | None = None
    ) -> Post | None: ...

    async def delete(self, post_id: int) -> bool:
        """Delete a post with its likes and comments in one transaction."""
        ...


class CommentStore(Protocol):
    async def create(self, post_id: int, user_id: int, content: str) -> Comment: ...

    async def get(self, comment_id: int) -> Comment | None: ...

    async def list_by_post(self, post_id: int, offset: int, limit: int) -> list[Comment]: ...

    async def update(self, comment_id: int, content: str) -> Comment | None: ...

    async def delete(self, comment_id: int) -> bool: ...


class LikeStore(Protocol):
    async def create(self, post_id: int, user_id: int) -> Like:
        """Insert a like; raises ConflictError if the pair already exists."""
        ...

    async def delete(self, post_id: int, user_id: int) -> bool: ...

    async def list_by_post(self, post_id: int, offset: int, limit: int) -> list[Like]: ...

    async def exists(self, post_id: int, user_id: int) -> bool: ...

    async def count(self, post_id: int) -> int: ...
