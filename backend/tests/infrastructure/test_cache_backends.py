"""Cache Backends — memory, Redis (mocked client) and KV namespace (in-memory fake).

Invariants:
    - get() returns None for absent/expired keys
    - Every set carries a TTL (default 300s when omitted)
    - invalidate_by_prefix removes exactly the keys under the prefix
"""

import json
from unittest.mock import AsyncMock, MagicMock

from calctree.infrastructure.kv_cache import KVCache
from calctree.infrastructure.memory_cache import MemoryCache
from calctree.infrastructure.redis_cache import RedisCache


# -- Helpers -------------------------------------------------------------------

class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class _FakeNamespace:
    """KV namespace binding over a dict; list() pages by `limit`."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.list_calls = 0

    async def get(self, key):
        return self.data.get(key)

    async def put(self, key, value, expiration_ttl=None):
        self.data[key] = value
        self.ttls[key] = expiration_ttl

    async def delete(self, key):
        self.data.pop(key, None)

    async def list(self, prefix=None, limit=None, cursor=None):
        self.list_calls += 1
        # cursor is the last name already returned: stable while keys are deleted
        names = sorted(
            k for k in self.data
            if k.startswith(prefix or "") and (cursor is None or k > cursor)
        )
        page = names[:limit]
        complete = len(names) <= limit
        return {
            "keys": [{"name": n} for n in page],
            "list_complete": complete,
            "cursor": None if complete else page[-1],
        }


async def _scan(*keys):
    for key in keys:
        yield key


# ==============================================================================
# MemoryCache
# ==============================================================================


async def test_memory_set_get_delete():
    cache = MemoryCache()
    await cache.set("calc:root:1", {"id": "1"})
    assert await cache.get("calc:root:1") == {"id": "1"}
    await cache.delete("calc:root:1")
    assert await cache.get("calc:root:1") is None
    await cache.delete("calc:root:1")


async def test_memory_expiry_uses_ttl_and_default():
    clock = _Clock()
    cache = MemoryCache(clock=clock)
    await cache.set("short", 1, ttl_seconds=10)
    await cache.set("default", 2)

    clock.now = 11
    assert await cache.get("short") is None
    assert await cache.get("default") == 2

    clock.now = 301
    assert await cache.get("default") is None
    assert cache.size() == 0


async def test_memory_falsy_values_are_hits():
    cache = MemoryCache()
    await cache.set("calc:tree:full", [])
    assert await cache.get("calc:tree:full") == []


async def test_memory_prefix_invalidation():
    cache = MemoryCache()
    for key in ("calc:root:1", "calc:root:1:ops", "calc:root:10", "calc:op:1"):
        await cache.set(key, key)
    await cache.invalidate_by_prefix("calc:root:1:")
    assert await cache.get("calc:root:1:ops") is None
    assert await cache.get("calc:root:1") == "calc:root:1"
    assert await cache.get("calc:root:10") == "calc:root:10"

    await cache.delete_many(["calc:root:1", "calc:op:1", "absent"])
    assert cache.size() == 1
    cache.clear()
    assert cache.size() == 0
    assert await cache.health_check()


# ==============================================================================
# RedisCache
# ==============================================================================


def _redis_client():
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.setex = AsyncMock()
    client.delete = AsyncMock()
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


async def test_redis_get_decodes_json():
    client = _redis_client()
    client.get.return_value = json.dumps({"id": "r1", "operations": []})
    cache = RedisCache(client)
    assert await cache.get("calc:root:r1") == {"id": "r1", "operations": []}


async def test_redis_get_miss_and_raw_text():
    client = _redis_client()
    cache = RedisCache(client)
    assert await cache.get("missing") is None
    client.get.return_value = "not-json{"
    assert await cache.get("raw") == "not-json{"


async def test_redis_set_uses_setex_with_ttl():
    client = _redis_client()
    cache = RedisCache(client)
    await cache.set("calc:root:r1", {"id": "r1"}, 600)
    await cache.set("calc:other", [1])
    client.setex.assert_any_await("calc:root:r1", 600, json.dumps({"id": "r1"}))
    client.setex.assert_any_await("calc:other", 300, "[1]")


async def test_redis_delete_many_single_round_trip():
    client = _redis_client()
    cache = RedisCache(client)
    await cache.delete_many(["a", "b"])
    await cache.delete_many([])
    client.delete.assert_awaited_once_with("a", "b")


async def test_redis_prefix_invalidation_scans():
    client = _redis_client()
    client.scan_iter = MagicMock(return_value=_scan("calc:root:r1:ops", "calc:root:r1:x"))
    cache = RedisCache(client)
    await cache.invalidate_by_prefix("calc:root:r1:")
    client.scan_iter.assert_called_once_with(match="calc:root:r1:*", count=100)
    client.delete.assert_awaited_once_with("calc:root:r1:ops", "calc:root:r1:x")


async def test_redis_prefix_invalidation_nothing_to_delete():
    client = _redis_client()
    client.scan_iter = MagicMock(return_value=_scan())
    await RedisCache(client).invalidate_by_prefix("calc:root:r9:")
    client.delete.assert_not_awaited()


async def test_redis_health_check_and_close():
    client = _redis_client()
    cache = RedisCache(client)
    assert await cache.health_check()
    client.ping.side_effect = ConnectionError("down")
    assert not await cache.health_check()
    await cache.close()
    client.aclose.assert_awaited_once()


# ==============================================================================
# KVCache
# ==============================================================================


async def test_kv_round_trip_with_ttl():
    ns = _FakeNamespace()
    cache = KVCache(ns)
    await cache.set("calc:op:o1", {"id": "o1"}, 600)
    await cache.set("calc:roots", [])
    assert await cache.get("calc:op:o1") == {"id": "o1"}
    assert await cache.get("calc:roots") == []
    assert ns.ttls == {"calc:op:o1": 600, "calc:roots": 300}
    assert await cache.get("absent") is None


async def test_kv_prefix_invalidation_follows_cursor(monkeypatch):
    monkeypatch.setattr("calctree.infrastructure.kv_cache.LIST_PAGE_SIZE", 2)
    ns = _FakeNamespace()
    cache = KVCache(ns)
    for i in range(5):
        await cache.set(f"calc:root:r1:k{i}", i)
    await cache.set("calc:root:r2", "keep")

    await cache.invalidate_by_prefix("calc:root:r1:")

    assert list(ns.data) == ["calc:root:r2"]
    assert ns.list_calls >= 3


async def test_kv_delete_many_and_health():
    ns = _FakeNamespace()
    cache = KVCache(ns)
    await cache.set("a", 1)
    await cache.set("b", 2)
    await cache.delete_many(["a", "b"])
    await cache.delete("missing")
    assert ns.data == {}
    assert await cache.health_check()
