"""Resilient Cache — decorator that turns every cache backend failure into a miss or a no-op.

Invariants:
    - get() failure → None (treated as a cache miss)
    - set/delete/delete_many/invalidate_by_prefix failure → logged at WARNING, never raised
    - Wraps any CacheRepository; is itself a CacheRepository

Design Decisions:
    - Decorator over inheritance: one wrapper for memory, Redis and edge KV backends
    - Cache is a non-critical accelerator: the database write already succeeded (or will
      propagate its own error), so a cache failure must not change the outcome
"""

import logging
from typing import Any

from calctree.core.errors import CacheError
from calctree.core.repository_protocols import CacheRepository

logger = logging.getLogger(__name__)


class ResilientCache:
    """Wraps a cache backend with graceful error handling."""

    def __init__(
        self, cache: CacheRepository, log: logging.Logger | None = None,
    ):
        self.cache = cache
        self.log = log or logger

    async def get(self, key: str) -> Any | None:
        try:
            return await self.cache.get(key)
        except Exception as e:
            self._warn(CacheError(str(e), "get"), key)
            return None

    async def set(
        self, key: str, value: Any, ttl_seconds: int | None = None,
    ) -> None:
        try:
            await self.cache.set(key, value, ttl_seconds)
        except Exception as e:
            self._warn(CacheError(str(e), "set"), key)

    async def delete(self, key: str) -> None:
        try:
            await self.cache.delete(key)
        except Exception as e:
            self._warn(CacheError(str(e), "delete"), key)

    async def delete_many(self, keys: list[str]) -> None:
        try:
            await self.cache.delete_many(keys)
        except Exception as e:
            self._warn(CacheError(str(e), "delete_many"), ", ".join(keys))

    async def invalidate_by_prefix(self, prefix: str) -> None:
        try:
            await self.cache.invalidate_by_prefix(prefix)
        except Exception as e:
            self._warn(CacheError(str(e), "invalidate_by_prefix"), prefix)

    def _warn(self, error: CacheError, key: str) -> None:
        self.log.warning(
            f"{error.message} (key: {key})",
            extra={"error_code": error.code, "cache_key": key},
        )
