"""SQLAlchemy Unit of Work — one transaction per run_in_transaction() call.

Invariants:
    - fn receives a repository bound to the transaction's session
    - Commit on normal return, rollback on any exception (session.begin())
    - Nested run_in_transaction() reuses the active repository instead of opening a new transaction
    - SQLAlchemy failures surface as DatabaseError; domain errors propagate unchanged

Design Decisions:
    - ContextVar for the active repository: concurrent requests on one event loop each see
      only their own transaction
    - Fresh session per transaction from DatabaseSessionManager: no connection shared across requests
"""

from contextvars import ContextVar
from typing import Awaitable, Callable, TypeVar

from calctree.core.repository_protocols import CalculationRepository
from calctree.infrastructure.database import DatabaseSessionManager
from calctree.infrastructure.sqlalchemy_repository import SqlAlchemyCalculationRepository

T = TypeVar("T")


class SqlAlchemyUnitOfWork:
    """UnitOfWork backed by DatabaseSessionManager sessions."""

    def __init__(self, session_manager: DatabaseSessionManager):
        self.session_manager = session_manager
        self._active: ContextVar[CalculationRepository | None] = ContextVar(
            "calctree_active_repository", default=None,
        )

    async def run_in_transaction(
        self, fn: Callable[[CalculationRepository], Awaitable[T]],
    ) -> T:
        active = self._active.get()
        if active is not None:
            return await fn(active)

        async with self.session_manager.session() as session:
            async with session.begin():
                repository = SqlAlchemyCalculationRepository(session)
                token = self._active.set(repository)
                try:
                    return await fn(repository)
                finally:
                    self._active.reset(token)
