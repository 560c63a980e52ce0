"""User and follow-edge models."""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated

from pydantic import Field

from newsfeed.core.model import StrictModel

EntityId = Annotated[int, Field(ge=0, le=2**64 - 1)]


class User(StrictModel):
    """A registered user as stored in the system of record.

    ``password_hash`` is produced by the authentication collaborator and
    is cached as-is; plaintext passwords never reach this layer.
    """

    id: EntityId
    username: Annotated[str, Field(min_length=1, max_length=255)]
    email: Annotated[str, Field(min_length=3, max_length=255)]
    password_hash: str
    first_name: str = ""
    last_name: str = ""
    birthday: date | None = None
    created_at: datetime
    updated_at: datetime


class UserCreate(StrictModel):
    """Registration input."""

    username: Annotated[str, Field(min_length=1, max_length=255)]
    email: Annotated[str, Field(min_length=3, max_length=255)]
    password_hash: str
    first_name: str = ""
    last_name: str = ""
    birthday: date | None = None


class UserUpdate(StrictModel):
    """Profile update; ``None`` leaves a field unchanged."""

    email: Annotated[str, Field(min_length=3, max_length=255)] | None = None
    password_hash: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    birthday: date | None = None


class Follow(StrictModel):
    """Directed follow edge. Has no identity of its own."""

    follower_id: EntityId
    following_id: EntityId
    created_at: datetime
