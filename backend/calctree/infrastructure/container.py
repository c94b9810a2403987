"""Service Container — wires the unit of work, cache backend and CalculationService.

Invariants:
    - Exactly one CalculationService per process (initialized on startup via lifespan)
    - Cache backend chosen once: injected KV namespace → Redis (redis_url set) → in-process memory
    - The service always receives the backend wrapped in ResilientCache

Design Decisions:
    - Module-level singleton mirrors infrastructure/database.py db_manager (ADR: no import side effects)
    - get_calculation_service is a FastAPI dependency: routes never construct services
"""

import logging

from calctree.config import Settings
from calctree.core.repository_protocols import CacheRepository
from calctree.infrastructure.database import DatabaseSessionManager
from calctree.infrastructure.kv_cache import KVCache, KVNamespace
from calctree.infrastructure.memory_cache import MemoryCache
from calctree.infrastructure.redis_cache import RedisCache
from calctree.infrastructure.unit_of_work import SqlAlchemyUnitOfWork
from calctree.services.calculation_service import CalculationService
from calctree.services.resilient_cache import ResilientCache

logger = logging.getLogger(__name__)

# Singletons (initialized on startup)
calculation_service: CalculationService | None = None
cache_backend: CacheRepository | None = None


def build_cache(
    settings: Settings, kv: KVNamespace | None = None,
) -> CacheRepository:
    if kv is not None:
        logger.info("Cache backend: kv namespace")
        return KVCache(kv)
    if settings.redis_url:
        logger.info("Cache backend: redis")
        return RedisCache.from_url(settings.redis_url)
    logger.info("Cache backend: memory")
    return MemoryCache()


def build_calculation_service(
    settings: Settings,
    db_manager: DatabaseSessionManager,
    kv: KVNamespace | None = None,
) -> tuple[CalculationService, CacheRepository]:
    """Service plus the raw backend (kept for health checks and shutdown)."""
    backend = build_cache(settings, kv)
    service = CalculationService(
        SqlAlchemyUnitOfWork(db_manager), ResilientCache(backend),
    )
    return service, backend


def init_calculation_service(
    settings: Settings,
    db_manager: DatabaseSessionManager,
    kv: KVNamespace | None = None,
) -> CalculationService:
    global calculation_service, cache_backend
    calculation_service, cache_backend = build_calculation_service(
        settings, db_manager, kv,
    )
    return calculation_service


def get_calculation_service() -> CalculationService:
    """FastAPI dependency."""
    if calculation_service is None:
        raise RuntimeError("CalculationService not initialized")
    return calculation_service


async def cache_health_check() -> bool:
    if cache_backend is None:
        return False
    return await cache_backend.health_check()


async def close_calculation_service() -> None:
    """Drain background cache writes, then release the cache backend."""
    global calculation_service, cache_backend
    if calculation_service is not None:
        await calculation_service.flush_cache_writes()
    if isinstance(cache_backend, RedisCache):
        await cache_backend.close()
    calculation_service = None
    cache_backend = None
