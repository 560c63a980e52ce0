"""Shared plumbing for the cache-aside services.

Every public service operation runs under a single deadline started on
entry and inherited by all store and cache calls beneath it. Exceeding it
cancels whatever is in flight (including pending cache writes, which are
not retried) and surfaces as OperationTimeoutError.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from newsfeed.cache.entity import EntityCache, EntityCaches
from newsfeed.config import settings
from newsfeed.core.model import Page
from newsfeed.errors import BadRequestError, OperationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")
P = ParamSpec("P")


def deadline(operation: str) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Run a service method under the service's operation timeout."""

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            service: BaseService = args[0]  # type: ignore[assignment]
            try:
                async with asyncio.timeout(service.timeout):
                    return await func(*args, **kwargs)
            except TimeoutError as e:
                logger.warning(f"{operation} exceeded {service.timeout}s deadline")
                raise OperationTimeoutError(operation, service.timeout) from e

        return wrapper

    return decorator


class BaseService:
    """Base class holding the cache families and the deadline."""

    def __init__(self, caches: EntityCaches, timeout: float | None = None) -> None:
        self.caches = caches
        self.timeout = settings.operation_timeout if timeout is None else timeout

    async def cache_aside(
        self,
        cache: EntityCache[T],
        parts: tuple[int, ...],
        load: Callable[[], Awaitable[T]],
    ) -> T:
        """Read through ``cache``; on a miss call ``load`` and repopulate.

        ``load`` reads the system of record and raises on absence, so a
        NotFound is never cached.
        """
        cached = await cache.read(*parts)
        if cached is not None:
            return cached
        value = await load()
        await cache.write(value, *parts)
        return value

    async def cache_aside_page(
        self,
        cache: EntityCache[Page[T]],
        parts: tuple[int, ...],
        page_size: int,
        load: Callable[[], Awaitable[list[T]]],
    ) -> list[T]:
        """Paged variant of cache_aside.

        Page keys carry the page number but not the size, so a cached page
        read at a different ``page_size`` counts as a miss and is replaced.
        """
        cached = await cache.read(*parts)
        if cached is not None and cached.page_size == page_size:
            return cached.items
        items = await load()
        await cache.write(cache.value_type(page_size=page_size, items=items), *parts)
        return items

    @staticmethod
    def page_bounds(page: int, page_size: int) -> tuple[int, int]:
        """Validate pagination and return (offset, limit)."""
        if page < 1:
            raise BadRequestError(f"page must be >= 1, got {page}")
        if not 1 <= page_size <= settings.max_page_size:
            raise BadRequestError(
                f"page_size must be between 1 and {settings.max_page_size}, got {page_size}"
            )
        return (page - 1) * page_size, page_size

