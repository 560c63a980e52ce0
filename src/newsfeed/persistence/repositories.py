"""SQLAlchemy repositories implementing the system-of-record contracts.

Each public method runs in its own transaction and commits before
returning, so that cache invalidation issued by a service afterwards
never precedes the write it reacts to.

Rows are converted to domain models at the repository boundary; no ORM
object escapes this module.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsfeed.core.model import Comment, Follow, Like, Post, User, UserCreate, UserUpdate
from newsfeed.errors import ConflictError
from newsfeed.persistence.db import get_session_factory, session_context
from newsfeed.persistence.tables import (
    CommentTable,
    FollowerTable,
    LikeTable,
    PostTable,
    UserTable,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


class BaseRepository(Generic[ModelT]):
    """Base repository holding the session factory and row conversion."""

    model: type[ModelT]

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self.session_factory = session_factory or get_session_factory()

    def _session(self):
        return session_context(self.session_factory)

    def _to_model(self, row: object) -> ModelT:
        return self.model.model_validate(row, from_attributes=True)


class UserRepository(BaseRepository[User]):
    """Users and follow edges."""

    model = User

    async def create(self, data: UserCreate) -> User:
        try:
            async with self._session() as session:
                row = UserTable(**data.model_dump())
                session.add(row)
                await session.flush()
                return self._to_model(row)
        except IntegrityError as e:
            raise ConflictError(f"Username or email already exists: {data.username}") from e

    async def get(self, user_id: int) -> User | None:
        async with self._session() as session:
            row = await session.get(UserTable, user_id)
            return self._to_model(row) if row else None

    async def get_by_username(self, username: str) -> User | None:
        async with self._session() as session:
            stmt = select(UserTable).where(UserTable.username == username)
            row = (await session.execute(stmt)).scalar_one_or_none()
            return self._to_model(row) if row else None

    async def get_by_email(self, email: str) -> User | None:
        async with self._session() as session:
            stmt = select(UserTable).where(UserTable.email == email)
            row = (await session.execute(stmt)).scalar_one_or_none()
            return self._to_model(row) if row else None

    async def update(self, user_id: int, changes: UserUpdate) -> User | None:
        try:
            async with self._session() as session:
                row = await session.get(UserTable, user_id)
                if row is None:
                    return None
                for field, value in changes.model_dump(exclude_none=True).items():
                    setattr(row, field, value)
                await session.flush()
                await session.refresh(row)
                return self._to_model(row)
        except IntegrityError as e:
            raise ConflictError(f"Email already exists: {changes.email}") from e

    async def delete(self, user_id: int) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(UserTable).where(UserTable.id == user_id))
            return result.rowcount > 0

    async def followers(self, user_id: int) -> list[User]:
        """Users following user_id."""
        async with self._session() as session:
            stmt = (
                select(UserTable)
                .join(FollowerTable, FollowerTable.follower_id == UserTable.id)
                .where(FollowerTable.following_id == user_id)
                .order_by(UserTable.id)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [self._to_model(row) for row in rows]

    async def following(self, user_id: int) -> list[User]:
        """Users that user_id follows."""
        async with self._session() as session:
            stmt = (
                select(UserTable)
                .join(FollowerTable, FollowerTable.following_id == UserTable.id)
                .where(FollowerTable.follower_id == user_id)
                .order_by(UserTable.id)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [self._to_model(row) for row in rows]

    async def follow(self, follower_id: int, following_id: int) -> Follow:
        async with self._session() as session:
            stmt = (
                pg_insert(FollowerTable)
                .values(follower_id=follower_id, following_id=following_id)
                .on_conflict_do_nothing(index_elements=["follower_id", "following_id"])
            )
            await session.execute(stmt)
            row = await session.get(FollowerTable, (follower_id, following_id))
            return Follow.model_validate(row, from_attributes=True)

    async def unfollow(self, follower_id: int, following_id: int) -> bool:
        async with self._session() as session:
            stmt = delete(FollowerTable).where(
                FollowerTable.follower_id == follower_id,
                FollowerTable.following_id == following_id,
            )
            result = await session.execute(stmt)
            return result.rowcount > 0


class PostRepository(BaseRepository[Post]):
    """Posts, including the newsfeed candidate query."""

    model = Post

    async def create(self, user_id: int, content: str, image_url: str | None = None) -> Post:
        async with self._session() as session:
            row = PostTable(user_id=user_id, content=content, image_url=image_url)
            session.add(row)
            await session.flush()
            return self._to_model(row)

    async def get(self, post_id: int) -> Post | None:
        async with self._session() as session:
            row = await session.get(PostTable, post_id)
            return self._to_model(row) if row else None

    async def list_by_user(self, user_id: int, offset: int, limit: int) -> list[Post]:
        async with self._session() as session:
            stmt = (
                select(PostTable)
                .where(PostTable.user_id == user_id)
                .order_by(PostTable.created_at.desc(), PostTable.id.desc())
                .offset(offset)
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [self._to_model(row) for row in rows]

    async def ids_by_user(self, user_id: int) -> list[int]:
        async with self._session() as session:
            stmt = select(PostTable.id).where(PostTable.user_id == user_id)
            return list((await session.execute(stmt)).scalars().all())

    async def list_by_authors(self, author_ids: Iterable[int], limit: int) -> list[Post]:
        authors = sorted(set(author_ids))
        if not authors or limit <= 0:
            return []
        async with self._session() as session:
            stmt = (
                select(PostTable)
                .where(PostTable.user_id.in_(authors))
                .order_by(PostTable.created_at.desc(), PostTable.id.desc())
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [self._to_model(row) for row in rows]

    async def update(
        self, post_id: int, content: str, image_url: str | None = None
    ) -> Post | None:
        async with self._session() as session:
            row = await session.get(PostTable, post_id)
            if row is None:
                return None
            row.content = content
            row.image_url = image_url
            await session.flush()
            await session.refresh(row)
            return self._to_model(row)

    async def delete(self, post_id: int) -> bool:
        async with self._session() as session:
            await session.execute(delete(LikeTable).where(LikeTable.post_id == post_id))
            await session.execute(delete(CommentTable).where(CommentTable.post_id == post_id))
            result = await session.execute(delete(PostTable).where(PostTable.id == post_id))
            return result.rowcount > 0


class CommentRepository(BaseRepository[Comment]):
    model = Comment

    async def create(self, post_id: int, user_id: int, content: str) -> Comment:
        async with self._session() as session:
            row = CommentTable(post_id=post_id, user_id=user_id, content=content)
            session.add(row)
            await session.flush()
            return self._to_model(row)

    async def get(self, comment_id: int) -> Comment | None:
        async with self._session() as session:
            row = await session.get(CommentTable, comment_id)
            return self._to_model(row) if row else None

    async def list_by_post(self, post_id: int, offset: int, limit: int) -> list[Comment]:
        async with self._session() as session:
            stmt = (
                select(CommentTable)
                .where(CommentTable.post_id == post_id)
                .order_by(CommentTable.created_at.desc(), CommentTable.id.desc())
                .offset(offset)
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [self._to_model(row) for row in rows]

    async def update(self, comment_id: int, content: str) -> Comment | None:
        async with self._session() as session:
            row = await session.get(CommentTable, comment_id)
            if row is None:
                return None
            row.content = content
            await session.flush()
            await session.refresh(row)
            return self._to_model(row)

    async def delete(self, comment_id: int) -> bool:
        async with self._session() as session:
            stmt = delete(CommentTable).where(CommentTable.id == comment_id)
            result = await session.execute(stmt)
            return result.rowcount > 0


class LikeRepository(BaseRepository[Like]):
    model = Like

    async def create(self, post_id: int, user_id: int) -> Like:
        try:
            async with self._session() as session:
                row = LikeTable(post_id=post_id, user_id=user_id)
                session.add(row)
                await session.flush()
                return self._to_model(row)
        except IntegrityError as e:
            raise ConflictError(f"Post {post_id} already liked by user {user_id}") from e

    async def delete(self, post_id: int, user_id: int) -> bool:
        async with self._session() as session:
            stmt = delete(LikeTable).where(
                LikeTable.post_id == post_id, LikeTable.user_id == user_id
            )
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def list_by_post(self, post_id: int, offset: int, limit: int) -> list[Like]:
        async with self._session() as session:
            stmt = (
                select(LikeTable)
                .where(LikeTable.post_id == post_id)
                .order_by(LikeTable.created_at.desc(), LikeTable.id.desc())
                .offset(offset)
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [self._to_model(row) for row in rows]

    async def exists(self, post_id: int, user_id: int) -> bool:
        async with self._session() as session:
            stmt = select(LikeTable.id).where(
                LikeTable.post_id == post_id, LikeTable.user_id == user_id
            )
            return (await session.execute(stmt)).first() is not None

    async def count(self, post_id: int) -> int:
        async with self._session() as session:
            stmt = select(func.count()).select_from(LikeTable).where(LikeTable.post_id == post_id)
            return int((await session.execute(stmt)).scalar_one())
