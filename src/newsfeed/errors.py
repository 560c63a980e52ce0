"""Error taxonomy for the newsfeed core.

Each error carries a stable ``code`` and the HTTP status the delivery
layer should map it to, and renders to the Result/Message body shape
used across the service. Store errors are fatal to an operation; cache
errors are always recovered locally and never reach callers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class MessageType(str, Enum):
    """Type of message in error response."""

    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"
    EXCEPTION = "Exception"


class Message(BaseModel):
    """Single error message."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    code: str
    message_type: MessageType = Field(alias="messageType")
    text: str
    timestamp: str | None = None


class Result(BaseModel):
    """Result wrapper for errors."""

    model_config = {"extra": "forbid"}

    messages: list[Message]


class NewsfeedError(Exception):
    """Base exception for newsfeed operations."""

    status_code = 500
    code = "InternalServerError"
    message_type = MessageType.ERROR

    def __init__(self, text: str):
        self.text = text
        super().__init__(text)

    def to_result(self) -> Result:
        return Result(
            messages=[
                Message(
                    code=self.code,
                    messageType=self.message_type,
                    text=self.text,
                    timestamp=datetime.now(UTC).isoformat(),
                )
            ]
        )


class NotFoundError(NewsfeedError):
    """Referenced entity is absent from the system of record (404)."""

    status_code = 404
    code = "NotFound"

    def __init__(self, resource_type: str, identifier: object):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} with identifier '{identifier}' not found")


class ForbiddenError(NewsfeedError):
    """Acting user does not own the resource being mutated (403)."""

    status_code = 403
    code = "Forbidden"

    def __init__(self, resource_type: str, identifier: object):
        super().__init__(f"Not allowed to modify {resource_type} '{identifier}'")


class ConflictError(NewsfeedError):
    """Duplicate like, username or email (409)."""

    status_code = 409
    code = "Conflict"


class BadRequestError(NewsfeedError):
    """Invalid arguments (400)."""

    status_code = 400
    code = "BadRequest"


class OperationTimeoutError(NewsfeedError):
    """Deadline exceeded on an orchestrated call chain (504)."""

    status_code = 504
    code = "Timeout"
    message_type = MessageType.EXCEPTION

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"Operation '{operation}' exceeded its {timeout}s deadline")


class CacheUnavailableError(NewsfeedError):
    """Cache backend failure.

    Raised by cache stores only. Entity caches translate it into a miss
    (reads) or a skipped side effect (writes), so it never reaches callers
    of the services.
    """

    status_code = 503
    code = "CacheUnavailable"
