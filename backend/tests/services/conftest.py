"""Service test fixtures — in-memory unit of work, recording cache, CalculationService.

Invariants:
    - Every test gets a fresh repository, cache and service
    - fake_uow.fail_with makes the next transaction roll back after its body ran

Design Decisions:
    - Dict-backed fakes over SQLite here: service tests assert orchestration (cache/transaction
      ordering); SQL behavior is covered in tests/infrastructure
"""

import pytest

from calctree.services.calculation_service import CalculationService

from tests.services.fakes import FakeUnitOfWork, RecordingCache


@pytest.fixture
def fake_uow():
    return FakeUnitOfWork()


@pytest.fixture
def cache():
    return RecordingCache()


@pytest.fixture
async def service(fake_uow, cache):
    svc = CalculationService(fake_uow, cache)
    yield svc
    await svc.flush_cache_writes()
