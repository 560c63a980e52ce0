"""Key/value store abstraction under the entity caches.

A cache store holds opaque bytes under string keys with a TTL. Every
operation may fail; implementations raise CacheUnavailableError and the
entity caches above treat that as a miss.
"""

from __future__ import annotations

import fnmatch
import time
from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable


@runtime_checkable
class CacheStore(Protocol):
    """Minimal cache backend contract."""

    async def get(self, key: str) -> bytes | None:
        """Return the stored bytes, or None on a miss."""
        ...

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        """Store bytes under key for ttl seconds."""
        ...

    async def delete(self, *keys: str) -> None:
        """Delete the given keys; absent keys are ignored."""
        ...

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern.

        Not atomic with respect to concurrent sets under the same pattern:
        a racing reader may repopulate a key right after it is removed.

        Returns the number of keys deleted.
        """
        ...

    async def health_check(self) -> bool:
        """Check backend connectivity."""
        ...


@dataclass
class _Entry:
    value: bytes
    expires_at: float


class MemoryCacheStore:
    """In-process cache store with TTL expiry.

    Suitable for tests and single-process deployments. ``clock`` is
    injectable so expiry can be driven without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, _Entry] = {}

    async def get(self, key: str) -> bytes | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._data.pop(key, None)
            return None
        return entry.value

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        self._data[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    async def delete_pattern(self, pattern: str) -> int:
        matched = [key for key in list(self._data) if fnmatch.fnmatchcase(key, pattern)]
        for key in matched:
            self._data.pop(key, None)
        return len(matched)

    async def health_check(self) -> bool:
        return True

    def ttl(self, key: str) -> float | None:
        """Remaining lifetime of a key in seconds, or None if absent."""
        entry = self._data.get(key)
        if entry is None:
            return None
        return max(0.0, entry.expires_at - self._clock())

    def keys(self) -> list[str]:
        now = self._clock()
        return sorted(key for key, entry in self._data.items() if entry.expires_at > now)
