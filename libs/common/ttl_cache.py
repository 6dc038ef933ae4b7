"""Small in-process TTL cache with an injectable clock.

Usage:
    cache = TTLCache(ttl_seconds=300)
    summary = await cache.get_or_set("summary", lambda: build_summary(db))
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable, Optional

Clock = Callable[[], float]

_MISSING = object()


@dataclass
class _Entry:
    value: Any
    stored_at: float


class TTLCache:
    """Key/value cache whose entries go stale ``ttl_seconds`` after being set.

    An entry is fresh while ``clock() - stored_at < ttl_seconds``. Pass a fake
    clock in tests instead of sleeping.
    """

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, _Entry] = {}
        self._lock = asyncio.Lock()

    def _is_fresh(self, entry: _Entry) -> bool:
        return self._clock() - entry.stored_at < self.ttl_seconds

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        if not self._is_fresh(entry):
            del self._entries[key]
            return default
        return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = _Entry(value=value, stored_at=self._clock())

    def age(self, key: Hashable) -> Optional[float]:
        """Seconds since ``key`` was stored, or None when absent or stale."""
        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry):
            return None
        return self._clock() - entry.stored_at

    async def get_or_set(
        self, key: Hashable, factory: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Return the cached value, computing it with ``factory`` on a miss.

        Concurrent misses for the same cache are serialised so the factory
        runs once per expiry.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        async with self._lock:
            value = self.get(key, _MISSING)
            if value is not _MISSING:
                return value
            value = await factory()
            self.set(key, value)
            return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when ``key`` is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return sum(1 for entry in self._entries.values() if self._is_fresh(entry))
