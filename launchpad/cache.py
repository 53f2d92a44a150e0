import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    fetched_at: float


class PriceCache:
    """In-memory cache of ``{value, fetched_at}`` entries with a fixed freshness window.

    Built once at application start and handed to every consumer, so a single
    ETH or DONUT price fetch serves the whole process. Stale entries are kept
    around: when a refresh fails the last known value is still better than a
    hard-coded default.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.fetched_at < self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value if it is still fresh."""
        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry):
            return None
        return entry.value

    def get_stale(self, key: str) -> Optional[Any]:
        """Return the last cached value regardless of age."""
        entry = self._entries.get(key)
        return entry.value if entry else None

    def entry(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())

    async def get_or_fetch(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        """Serve a fresh value or fetch-and-replace it.

        Concurrent callers for the same key share a single upstream fetch.
        Exceptions from ``fetch`` propagate; the previous entry is left intact.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self.get(key)
            if cached is not None:
                return cached
            value = await fetch()
            self.set(key, value)
            return value

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)
