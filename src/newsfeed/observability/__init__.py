"""Logging and correlation context."""

from newsfeed.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    configure_logging,
    request_id_var,
    user_id_var,
)

__all__ = [
    "ConsoleFormatter",
    "JsonFormatter",
    "LogContext",
    "configure_logging",
    "request_id_var",
    "user_id_var",
]
