"""System-of-record layer: contracts, tables and SQLAlchemy repositories."""

from newsfeed.persistence.base import CommentStore, LikeStore, PostStore, UserStore
from newsfeed.persistence.repositories import (
    CommentRepository,
    LikeRepository,
    PostRepository,
    UserRepository,
)

__all__ = [
    "UserStore",
    "PostStore",
    "CommentStore",
    "LikeStore",
    "UserRepository",
    "PostRepository",
    "CommentRepository",
    "LikeRepository",
]
