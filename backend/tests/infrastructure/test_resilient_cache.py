"""ResilientCache — backend failures become misses or no-ops, logged at WARNING."""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from calctree.infrastructure.memory_cache import MemoryCache
from calctree.services.resilient_cache import ResilientCache


@pytest.fixture
def broken():
    backend = AsyncMock()
    for method in ("get", "set", "delete", "delete_many", "invalidate_by_prefix"):
        getattr(backend, method).side_effect = ConnectionError("refused")
    return backend


async def test_get_failure_is_a_miss(broken, caplog):
    cache = ResilientCache(broken)
    with caplog.at_level(logging.WARNING):
        assert await cache.get("calc:tree:full") is None
    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.error_code == "CACHE_ERROR"
    assert record.cache_key == "calc:tree:full"


async def test_write_failures_are_swallowed(broken, caplog):
    cache = ResilientCache(broken)
    with caplog.at_level(logging.WARNING):
        await cache.set("k", 1, 60)
        await cache.delete("k")
        await cache.delete_many(["a", "b"])
        await cache.invalidate_by_prefix("calc:root:r1:")
    assert len(caplog.records) == 4
    assert caplog.records[2].cache_key == "a, b"


async def test_healthy_backend_passes_through():
    backend = MemoryCache()
    cache = ResilientCache(backend)
    await cache.set("k", {"v": 1}, 60)
    assert await cache.get("k") == {"v": 1}
    await cache.delete_many(["k"])
    assert await backend.get("k") is None


async def test_custom_logger(broken):
    log = MagicMock()
    await ResilientCache(broken, log=log).delete("k")
    log.warning.assert_called_once()
    assert log.warning.call_args.kwargs["extra"] == {
        "error_code": "CACHE_ERROR", "cache_key": "k",
    }
