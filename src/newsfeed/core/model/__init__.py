"""Domain models for the newsfeed core.

All models use Pydantic v2. They are what services accept and return,
and what entity caches serialize.
"""

from pydantic import BaseModel


class StrictModel(BaseModel):
    """Base model for all newsfeed domain models.

    Unknown fields are rejected so that a cache entry written by an
    incompatible version decodes as a miss instead of a half-filled model.
    """

    model_config = {
        "extra": "forbid",
        "populate_by_name": True,
        "validate_default": True,
    }


# ruff: noqa: E402
from newsfeed.core.model.posts import Comment, FeedPage, Like, Page, Post, PostDetail
from newsfeed.core.model.users import Follow, User, UserCreate, UserUpdate

__all__ = [
    "StrictModel",
    "User",
    "UserCreate",
    "UserUpdate",
    "Follow",
    "Post",
    "PostDetail",
    "Comment",
    "Like",
    "FeedPage",
    "Page",
]
