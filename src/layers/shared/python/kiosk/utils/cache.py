"""Small in-memory TTL cache for record store lookups.

The staff directory changes rarely, so repeated host lookups from the
kiosk are served from memory for a few minutes.
"""

import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class CacheEntry:
    """A cached value with its expiry."""

    data: Any
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


class TTLCache:
    """Dict-backed cache where every entry expires after its TTL."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    def get(self, key: str) -> Any | None:
        """Get cached data if still valid."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None

        return entry.data

    def set(self, key: str, data: Any, ttl_minutes: float = 10) -> None:
        """Cache data for ttl_minutes."""
        self._entries[key] = CacheEntry(
            data=data,
            timestamp=self._clock(),
            ttl=ttl_minutes * 60,
        )

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get_stats(self) -> dict[str, Any]:
        return {"size": len(self._entries), "keys": list(self._entries)}

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]],
        ttl_minutes: float = 10,
    ) -> T:
        """Return the cached value for key, loading and caching it on a miss.

        Loader errors propagate and nothing is cached.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("Cache hit", key=key)
            return cached

        logger.debug("Cache miss", key=key)
        result = await loader()
        self.set(key, result, ttl_minutes)
        return result
