"""Memory Cache — in-process CacheRepository with per-entry expiry.

Invariants:
    - Expired entries are evicted lazily on get()
    - Values are stored as given (no serialization): callers cache plain records

Design Decisions:
    - Injectable clock: expiry is testable without sleeping
    - Single process only — not shared across workers (development and tests)
"""

import time
from dataclasses import dataclass
from typing import Any, Callable

from calctree.core.cache_keys import DEFAULT_TTL_SECONDS


@dataclass
class _Entry:
    value: Any
    expires_at: float


class MemoryCache:
    """Dict-backed cache."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._store: dict[str, _Entry] = {}
        self._clock = clock

    async def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            del self._store[key]
            return None
        return entry.value

    async def set(
        self, key: str, value: Any, ttl_seconds: int | None = None,
    ) -> None:
        ttl = DEFAULT_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._store[key] = _Entry(value, self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def delete_many(self, keys: list[str]) -> None:
        for key in keys:
            self._store.pop(key, None)

    async def invalidate_by_prefix(self, prefix: str) -> None:
        for key in [k for k in self._store if k.startswith(prefix)]:
            del self._store[key]

    async def health_check(self) -> bool:
        return True

    def clear(self) -> None:
        self._store.clear()

    def size(self) -> int:
        return len(self._store)
