"""Post, comment, like and feed page models."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Generic, TypeVar

from pydantic import Field

from newsfeed.core.model import StrictModel
from newsfeed.core.model.users import EntityId

ItemT = TypeVar("ItemT")


class Post(StrictModel):
    """Post summary as stored and cached.

    Likes and comments are deliberately absent; see ``PostDetail``.
    """

    id: EntityId
    user_id: EntityId
    content: Annotated[str, Field(max_length=10000)]
    image_url: str | None = None
    created_at: datetime
    updated_at: datetime

    def sort_key(self) -> tuple[datetime, int]:
        """Feed ordering key: newest first, larger id first on ties."""
        return (self.created_at, self.id)


class Comment(StrictModel):
    """Comment on a post."""

    id: EntityId
    post_id: EntityId
    user_id: EntityId
    content: Annotated[str, Field(min_length=1, max_length=5000)]
    created_at: datetime
    updated_at: datetime


class Like(StrictModel):
    """Like of a post by a user. Unique per (post_id, user_id)."""

    id: EntityId
    post_id: EntityId
    user_id: EntityId
    created_at: datetime


class PostDetail(Post):
    """Post materialized for a response, with likes and comments attached.

    Built at the response boundary and never persisted or cached as a unit.
    """

    likes: list[Like] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)

    @classmethod
    def attach(cls, post: Post, likes: list[Like], comments: list[Comment]) -> PostDetail:
        return cls(**post.model_dump(), likes=likes, comments=comments)


class FeedPage(StrictModel):
    """One page of a user's newsfeed."""

    user_id: EntityId
    page: Annotated[int, Field(ge=1)]
    page_size: Annotated[int, Field(ge=1)]
    posts: list[Post] = Field(default_factory=list)


class Page(StrictModel, Generic[ItemT]):
    """A cached page of a collection, tagged with the size it was read at.

    A cached page is only valid for requests with the same ``page_size``;
    the key carries the page number alone.
    """

    page_size: Annotated[int, Field(ge=1)]
    items: list[ItemT] = Field(default_factory=list)
