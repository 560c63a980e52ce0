"""Tests for SQLAlchemy repositories against a mocked session."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from newsfeed.core.model import Follow, UserUpdate
from newsfeed.errors import ConflictError
from newsfeed.persistence.repositories import LikeRepository, PostRepository, UserRepository
from newsfeed.persistence.tables import FollowerTable, UserTable

NOW = datetime(2026, 3, 1, tzinfo=UTC)


@pytest.fixture
def session() -> AsyncMock:
    session = AsyncMock()
    session.add = MagicMock()
    session.execute.return_value = MagicMock(rowcount=1)
    return session


@pytest.fixture
def factory(session: AsyncMock) -> MagicMock:
    return MagicMock(return_value=session)


class TestPostRepository:
    """Test post persistence."""

    @pytest.mark.asyncio
    async def test_delete_removes_children_in_one_transaction(
        self, factory: MagicMock, session: AsyncMock
    ) -> None:
        """Likes, comments and the post are deleted before one commit."""
        assert await PostRepository(factory).delete(5) is True

        tables = [call.args[0].table.name for call in session.execute.await_args_list]
        assert tables == ["likes", "comments", "posts"]
        session.commit.assert_awaited_once()
        factory.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete_missing_post(self, factory: MagicMock, session: AsyncMock) -> None:
        """No post row deleted reports False."""
        session.execute.return_value = MagicMock(rowcount=0)
        assert await PostRepository(factory).delete(5) is False

    @pytest.mark.asyncio
    async def test_list_by_authors_without_authors(
        self, factory: MagicMock, session: AsyncMock
    ) -> None:
        """Empty author set short-circuits without a query."""
        assert await PostRepository(factory).list_by_authors([], 10) == []
        session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ids_by_user(self, factory: MagicMock, session: AsyncMock) -> None:
        """Post ids come back as a plain list."""
        result = MagicMock()
        result.scalars.return_value.all.return_value = [3, 4]
        session.execute.return_value = result

        assert await PostRepository(factory).ids_by_user(1) == [3, 4]


class TestLikeRepository:
    """Test like persistence."""

    @pytest.mark.asyncio
    async def test_duplicate_like_is_conflict(
        self, factory: MagicMock, session: AsyncMock
    ) -> None:
        """Unique violation becomes ConflictError and rolls back."""
        session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate"))

        with pytest.raises(ConflictError):
            await LikeRepository(factory).create(1, 2)
        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()


class TestUserRepository:
    """Test user persistence."""

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, factory: MagicMock, session: AsyncMock) -> None:
        """Absent row is reported as None."""
        session.get.return_value = None
        assert await UserRepository(factory).get(404) is None

    @pytest.mark.asyncio
    async def test_unfollow_reports_missing_edge(
        self, factory: MagicMock, session: AsyncMock
    ) -> None:
        """Deleting no edge reports False."""
        session.execute.return_value = MagicMock(rowcount=0)
        assert await UserRepository(factory).unfollow(1, 2) is False

    @pytest.mark.asyncio
    async def test_update_skips_none_fields(self, factory: MagicMock, session: AsyncMock) -> None:
        """None in an update leaves the column untouched."""
        row = UserTable(
            id=1,
            username="alice",
            email="alice@example.com",
            password_hash="h",
            first_name="",
            last_name="",
            birthday=None,
            created_at=NOW,
            updated_at=NOW,
        )
        session.get.return_value = row

        user = await UserRepository(factory).update(1, UserUpdate(email=None, first_name="Alice"))

        assert user.email == "alice@example.com"
        assert user.first_name == "Alice"
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_follow_returns_edge(self, factory: MagicMock, session: AsyncMock) -> None:
        """The stored edge is read back after the upsert."""
        session.get.return_value = FollowerTable(follower_id=1, following_id=2, created_at=NOW)

        edge = await UserRepository(factory).follow(1, 2)

        assert edge == Follow(follower_id=1, following_id=2, created_at=NOW)
        session.execute.assert_awaited_once()
