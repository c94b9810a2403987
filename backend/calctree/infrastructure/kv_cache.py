"""KV Cache — CacheRepository over an edge key-value namespace binding.

Invariants:
    - Values are JSON-encoded text; get() decodes, returning raw text when decoding fails
    - Every put carries expiration_ttl (no entry lives without a TTL)
    - invalidate_by_prefix() follows list() cursors until list_complete

Design Decisions:
    - KVNamespace is a Protocol: any binding with get/put/delete/list plugs in
    - Deletes run concurrently per page (namespace has no batch delete)
"""

import asyncio
import json
import logging
from typing import Any, Protocol

from calctree.core.cache_keys import DEFAULT_TTL_SECONDS

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 1000
HEALTH_CHECK_KEY = "calc:health"


class KVNamespace(Protocol):
    """Async key-value namespace binding.

    list() returns {"keys": [{"name": str}, ...], "list_complete": bool, "cursor": str | None}.
    """

    async def get(self, key: str) -> str | None: ...

    async def put(
        self, key: str, value: str, expiration_ttl: int | None = None,
    ) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def list(
        self, prefix: str | None = None, limit: int | None = None,
        cursor: str | None = None,
    ) -> dict: ...


class KVCache:
    """Cache backed by a KV namespace."""

    def __init__(self, namespace: KVNamespace):
        self.namespace = namespace

    async def get(self, key: str) -> Any | None:
        raw = await self.namespace.get(key)
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
        await self.namespace.put(key, json.dumps(value), expiration_ttl=ttl)

    async def delete(self, key: str) -> None:
        await self.namespace.delete(key)

    async def delete_many(self, keys: list[str]) -> None:
        await asyncio.gather(*(self.namespace.delete(key) for key in keys))

    async def invalidate_by_prefix(self, prefix: str) -> None:
        cursor: str | None = None
        removed = 0
        while True:
            page = await self.namespace.list(
                prefix=prefix, limit=LIST_PAGE_SIZE, cursor=cursor,
            )
            names = [entry["name"] for entry in page.get("keys", [])]
            await self.delete_many(names)
            removed += len(names)
            if page.get("list_complete", True):
                break
            cursor = page.get("cursor")
            if not cursor:
                break
        if removed:
            logger.debug(
                f"Invalidated {removed} key(s) under {prefix}",
                extra={"cache_key": prefix},
            )

    async def health_check(self) -> bool:
        try:
            await self.namespace.put(HEALTH_CHECK_KEY, "ok", expiration_ttl=60)
            return await self.namespace.get(HEALTH_CHECK_KEY) == "ok"
        except Exception as e:
            logger.error(f"KV health check failed: {e}")
            return False
