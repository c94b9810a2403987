"""Redis Cache — networked CacheRepository on redis.asyncio.

Invariants:
    - Values are JSON-encoded on set() and decoded on get(); undecodable payloads come back raw
    - Every key is written with SETEX (no key lives without a TTL)
    - invalidate_by_prefix() walks SCAN (never KEYS) and deletes in one DEL

Design Decisions:
    - Errors are NOT caught here: ResilientCache owns failure policy for every backend
    - Client injected (from_url() for production, a mock in tests)
"""

import json
import logging
from typing import Any

from redis.asyncio import Redis

from calctree.core.cache_keys import DEFAULT_TTL_SECONDS

logger = logging.getLogger(__name__)

SCAN_BATCH_SIZE = 100


class RedisCache:
    """Cache backed by a Redis server."""

    def __init__(self, client: Redis):
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisCache":
        return cls(Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        ))

    async def get(self, key: str) -> Any | None:
        raw = await self.client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return raw

    async def set(
        self, key: str, value: Any, ttl_seconds: int | None = None,
    ) -> None:
        ttl = DEFAULT_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        await self.client.setex(key, ttl, json.dumps(value))

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def delete_many(self, keys: list[str]) -> None:
        if keys:
            await self.client.delete(*keys)

    async def invalidate_by_prefix(self, prefix: str) -> None:
        keys = [
            key async for key in self.client.scan_iter(
                match=f"{prefix}*", count=SCAN_BATCH_SIZE,
            )
        ]
        if keys:
            await self.client.delete(*keys)
            logger.debug(
                f"Invalidated {len(keys)} key(s) under {prefix}",
                extra={"cache_key": prefix},
            )

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.aclose()
