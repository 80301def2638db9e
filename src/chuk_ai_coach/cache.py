# chuk_ai_coach/cache.py
"""
Read-through cache over a remote source of truth.

Used for the credits account and the conversation window: values are loaded
from the remote on a miss, overwritten after a successful remote write, and
dropped on any ambiguity so the next read goes back to the remote. The cache
never decides anything on its own; it only saves a round-trip.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Hashable
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Loader = Callable[[K], Awaitable[V | None]]


class CacheStats(BaseModel):
    """Counters for a ReadThroughCache."""

    hits: int = 0
    misses: int = 0
    loads: int = 0
    invalidations: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total


class _Entry(BaseModel):
    model_config = {"arbitrary_types_allowed": True}

    value: Any
    stored_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ReadThroughCache(Generic[K, V]):
    """
    LRU read-through cache with explicit invalidate/resync.

    The loader is the remote read. A loader returning ``None`` means "no such
    record" and is not cached. Loader exceptions propagate and leave the cache
    without an entry for that key.
    """

    def __init__(self, loader: Loader, max_entries: int = 256):
        self._loader = loader
        self.max_entries = max_entries
        self._cache: OrderedDict[K, _Entry] = OrderedDict()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "loads": 0,
            "invalidations": 0,
            "evictions": 0,
        }

    def peek(self, key: K) -> V | None:
        """Return the cached value without touching the remote."""
        entry = self._cache.get(key)
        return entry.value if entry else None

    async def get(self, key: K) -> V | None:
        """Cached value, loading from the remote on a miss."""
        if key in self._cache:
            self._cache.move_to_end(key)
            self._stats["hits"] += 1
            return self._cache[key].value

        self._stats["misses"] += 1
        return await self.resync(key)

    async def resync(self, key: K) -> V | None:
        """Drop any cached value and reload it from the remote."""
        self._cache.pop(key, None)
        self._stats["loads"] += 1
        value = await self._loader(key)
        if value is not None:
            self.put(key, value)
        return value

    def put(self, key: K, value: V) -> None:
        """Store a value confirmed by the remote. Evicts LRU when full."""
        if key in self._cache:
            del self._cache[key]
        while len(self._cache) >= self.max_entries:
            self._cache.popitem(last=False)
            self._stats["evictions"] += 1
        self._cache[key] = _Entry(value=value)

    def invalidate(self, key: K) -> bool:
        """Discard the cached value for ``key``. Returns True if one existed."""
        if self._cache.pop(key, None) is None:
            return False
        self._stats["invalidations"] += 1
        logger.debug("Invalidated cache entry %s", key)
        return True

    def invalidate_all(self) -> None:
        count = len(self._cache)
        self._cache.clear()
        self._stats["invalidations"] += count

    def __contains__(self, key: object) -> bool:
        return key in self._cache

    @property
    def size(self) -> int:
        return len(self._cache)

    def get_stats(self) -> CacheStats:
        return CacheStats(**self._stats, size=len(self._cache), max_size=self.max_entries)
