"""In-memory cache for AI extraction results."""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class ResponseCache(Generic[T]):
    """Insertion-ordered TTL cache with periodic half-size eviction.

    Reads drop expired entries. Writes trim the cache when at least
    ``trim_interval`` seconds have passed since the last trim and the size
    exceeds ``max_size``; the oldest ``max_size // 2`` entries are evicted.
    """

    def __init__(
        self,
        ttl: float = 3600,
        max_size: int = 1000,
        trim_interval: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_size = max_size
        self.trim_interval = trim_interval
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, T]] = OrderedDict()
        self._last_trim = clock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: T) -> None:
        # Re-setting a key keeps its original position.
        self._entries[key] = (self._clock(), value)
        if self._clock() - self._last_trim >= self.trim_interval:
            self.trim()

    def trim(self) -> int:
        """Evict the oldest half-capacity block if over ``max_size``; return the count."""
        self._last_trim = self._clock()
        if len(self._entries) <= self.max_size:
            return 0

        evicted = 0
        for _ in range(min(self.max_size // 2, len(self._entries))):
            self._entries.popitem(last=False)
            evicted += 1

        logger.info("ai_cache_trimmed", evicted=evicted, remaining=len(self._entries))
        return evicted

    def clear(self) -> None:
        self._entries.clear()
