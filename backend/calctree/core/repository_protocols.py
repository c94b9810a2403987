"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection
    - Repository methods only run inside UnitOfWork.run_in_transaction()

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions that USE these protocols are never async themselves —
      the service orchestrates the async calls around the pure logic
"""

from typing import Any, Awaitable, Callable, Protocol, TypeVar

from calctree.core.calculation_operation import CalculationOperation
from calctree.core.calculation_root import CalculationRoot

T = TypeVar("T")


class CalculationRepository(Protocol):
    """Contract for calculation persistence — implemented by shell."""
    async def find_all_roots_with_operations(self) -> list[CalculationRoot]: ...
    async def find_root_by_id(self, root_id: str) -> CalculationRoot | None: ...
    async def find_root_with_operations(
        self, root_id: str,
    ) -> CalculationRoot | None: ...
    async def find_operation_by_id(
        self, operation_id: str,
    ) -> CalculationOperation | None: ...
    async def find_operations_by_root_id(
        self, root_id: str,
    ) -> list[CalculationOperation]: ...
    async def find_child_operations(
        self, parent_operation_id: str,
    ) -> list[CalculationOperation]: ...
    async def save_root(self, root: CalculationRoot) -> None: ...
    async def save_operation(self, operation: CalculationOperation) -> None: ...
    async def delete_root(self, root_id: str) -> None: ...
    async def delete_operation(self, operation_id: str) -> None: ...


class UnitOfWork(Protocol):
    """Transaction boundary — fn gets a repository scoped to one transaction.

    Nested calls reuse the active transaction; any exception rolls everything back.
    """
    async def run_in_transaction(
        self, fn: Callable[[CalculationRepository], Awaitable[T]],
    ) -> T: ...


class CacheRepository(Protocol):
    """Contract for the cache backend (memory, Redis, edge KV) — implemented by shell."""
    async def get(self, key: str) -> Any | None: ...
    async def set(
        self, key: str, value: Any, ttl_seconds: int | None = None,
    ) -> None: ...
    async def delete(self, key: str) -> None: ...
    async def delete_many(self, keys: list[str]) -> None: ...
    async def invalidate_by_prefix(self, prefix: str) -> None: ...
