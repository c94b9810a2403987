"""API test fixtures — FastAPI client wired to a SQLite-backed CalculationService.

Invariants:
    - get_calculation_service overridden per test (fresh database and memory cache)
    - db_manager patched so readiness probes hit the test engine

Design Decisions:
    - ASGITransport does not run lifespan: nothing touches the configured DATABASE_URL
"""

import pytest
from httpx import ASGITransport, AsyncClient

import calctree.infrastructure.database as db_module
from calctree.config import Settings
from calctree.infrastructure import container
from calctree.main import app


@pytest.fixture
async def api_service(session_manager):
    service, backend = container.build_calculation_service(
        Settings(redis_url=None), session_manager,
    )
    yield service
    await service.flush_cache_writes()


@pytest.fixture
async def client(session_manager, api_service, monkeypatch):
    """FastAPI test client with the service dependency overridden."""
    app.dependency_overrides[container.get_calculation_service] = lambda: api_service
    monkeypatch.setattr(db_module, "db_manager", session_manager)

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def alice():
    return {"X-User-Id": "user-alice", "X-Username": "alice"}
