"""Calculation Service — cache-aside reads and transactional writes for calculation trees.

Invariants:
    - Cache hit never touches persistence; cache miss loads, then populates the cache in the background
    - Writes invalidate the affected keys BEFORE the transaction and AGAIN on failure
    - After a successful write the new entity is cached individually and FULL_TREE is dropped
      (never patched in place)
    - Cache failures never surface (ResilientCache); persistence/domain errors always propagate
    - No per-request state: only the unit of work, the cache and in-flight cache-write tasks

Design Decisions:
    - Optimistic pre-write invalidation: a concurrent reader may still repopulate a stale entry
      between invalidation and commit (accepted eventual consistency, cache-aside)
    - Background cache writes are tasks held until done so they are not garbage-collected
      mid-flight; flush_cache_writes() lets shutdown and tests wait for them
    - Every write first awaits in-flight background cache writes, so a fill scheduled by an
      earlier read cannot land after the write's invalidation
    - A new operation drops FULL_TREE and its ancestor root's ROOT(id) entry after commit,
      so get_root_by_id does not keep serving a tree without the new descendant
    - OPERATION(id) holds the operation alone (no children): get_operation_by_id reads it
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from calctree.core.cache_keys import CacheKeys, CacheTTL
from calctree.core.calculation_operation import CalculationOperation
from calctree.core.calculation_root import CalculationRoot
from calctree.core.errors import (
    AmbiguousParentError,
    ErrorContext,
    MissingParentError,
    ParentOperationNotFoundError,
    ParentRootNotFoundError,
    ResourceNotFoundError,
)
from calctree.core.operator import Operator
from calctree.core.repository_protocols import (
    CacheRepository, CalculationRepository, UnitOfWork,
)
from calctree.core.tree_assembly import (
    operation_from_record, root_from_record, roots_from_records,
)
from calctree.services.resilient_cache import ResilientCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateRootInput:
    value: float
    user_id: str
    username: str | None = None


@dataclass(frozen=True)
class CreateOperationInput:
    operator: str
    operand: float
    user_id: str
    parent_root_id: str | None = None
    parent_operation_id: str | None = None
    username: str | None = None


class CalculationService:
    """Coordinates cache, unit of work and entity factories."""

    def __init__(self, unit_of_work: UnitOfWork, cache: CacheRepository):
        self.unit_of_work = unit_of_work
        self.cache = cache if isinstance(cache, ResilientCache) else ResilientCache(cache)
        self._pending_cache_writes: set[asyncio.Task] = set()

    # ─── Queries ─────────────────────────────────────────────────

    async def get_full_tree(self) -> list[CalculationRoot]:
        """All roots with their operation trees, newest root first."""
        cached = await self.cache.get(CacheKeys.FULL_TREE)
        if cached is not None:
            return roots_from_records(cached)

        trees = await self.unit_of_work.run_in_transaction(
            lambda repo: repo.find_all_roots_with_operations(),
        )
        self._cache_in_background(
            CacheKeys.FULL_TREE,
            [tree.serialize() for tree in trees],
            CacheTTL.FULL_TREE,
        )
        return trees

    async def get_root_by_id(self, root_id: str) -> CalculationRoot | None:
        cached = await self.cache.get(CacheKeys.ROOT(root_id))
        if cached is not None:
            return root_from_record(cached)

        root = await self.unit_of_work.run_in_transaction(
            lambda repo: repo.find_root_with_operations(root_id),
        )
        if root is not None:
            self._cache_in_background(
                CacheKeys.ROOT(root_id), root.serialize(), CacheTTL.ROOT,
            )
        return root

    async def get_operation_by_id(
        self, operation_id: str,
    ) -> CalculationOperation | None:
        """A single operation without its replies."""
        cached = await self.cache.get(CacheKeys.OPERATION(operation_id))
        if cached is not None:
            return operation_from_record(cached)

        operation = await self.unit_of_work.run_in_transaction(
            lambda repo: repo.find_operation_by_id(operation_id),
        )
        if operation is not None:
            self._cache_in_background(
                CacheKeys.OPERATION(operation_id),
                operation.serialize(),
                CacheTTL.OPERATION,
            )
        return operation

    # ─── Commands ────────────────────────────────────────────────

    async def create_root(self, data: CreateRootInput) -> CalculationRoot:
        """Persist a new starting number."""
        await self.flush_cache_writes()
        keys = [CacheKeys.ROOT_LIST, CacheKeys.FULL_TREE]
        await self.cache.delete_many(keys)
        try:
            root = await self.unit_of_work.run_in_transaction(
                lambda repo: self._persist_root(repo, data),
            )
        except Exception:
            await self.cache.delete_many(keys)
            raise

        await asyncio.gather(
            self.cache.set(CacheKeys.ROOT(root.id), root.serialize(), CacheTTL.ROOT),
            self.cache.delete(CacheKeys.FULL_TREE),
        )
        logger.info(
            f"Created calculation root {root.id}", extra={"root_id": root.id},
        )
        return root

    async def create_operation(
        self, data: CreateOperationInput,
    ) -> CalculationOperation:
        """Persist a reply to a root or to another operation."""
        if not data.parent_root_id and not data.parent_operation_id:
            raise MissingParentError()
        if data.parent_root_id and data.parent_operation_id:
            raise AmbiguousParentError()

        await self.flush_cache_writes()
        keys = _parent_scoped_keys(data)
        await self.cache.delete_many(keys)
        try:
            operation, ancestor_root_id = await self.unit_of_work.run_in_transaction(
                lambda repo: self._persist_operation(repo, data),
            )
        except Exception:
            await self.cache.delete_many(keys)
            raise

        await asyncio.gather(
            self.cache.set(
                CacheKeys.OPERATION(operation.id),
                operation.serialize(),
                CacheTTL.OPERATION,
            ),
            self.cache.delete_many(_tree_keys(ancestor_root_id)),
        )
        logger.info(
            f"Created operation {operation.id} ({operation.display_string()})",
            extra={"operation_id": operation.id, "root_id": ancestor_root_id},
        )
        return operation

    async def delete_root(self, root_id: str) -> None:
        """Delete a root; the database cascades to every descendant operation."""
        await self.flush_cache_writes()
        keys = [
            CacheKeys.FULL_TREE, CacheKeys.ROOT_LIST,
            CacheKeys.ROOT(root_id), CacheKeys.ROOT_OPERATIONS(root_id),
        ]
        await self.cache.delete_many(keys)
        try:
            operation_ids = await self.unit_of_work.run_in_transaction(
                lambda repo: self._remove_root(repo, root_id),
            )
        except Exception:
            await self.cache.delete_many(keys)
            raise

        await self.cache.invalidate_by_prefix(f"{CacheKeys.ROOT(root_id)}:")
        stale = [
            key
            for operation_id in operation_ids
            for key in (
                CacheKeys.OPERATION(operation_id),
                CacheKeys.OPERATION_CHILDREN(operation_id),
            )
        ]
        await self.cache.delete_many([CacheKeys.FULL_TREE, *stale])
        logger.info(
            f"Deleted calculation root {root_id} with {len(operation_ids)} operation(s)",
            extra={"root_id": root_id},
        )

    async def flush_cache_writes(self) -> None:
        """Wait for in-flight background cache writes."""
        if self._pending_cache_writes:
            await asyncio.gather(
                *self._pending_cache_writes, return_exceptions=True,
            )

    # ─── Transaction Bodies ──────────────────────────────────────

    async def _persist_root(
        self, repo: CalculationRepository, data: CreateRootInput,
    ) -> CalculationRoot:
        root = CalculationRoot.create(
            value=data.value, user_id=data.user_id, username=data.username,
        )
        await repo.save_root(root)
        return root

    async def _persist_operation(
        self, repo: CalculationRepository, data: CreateOperationInput,
    ) -> tuple[CalculationOperation, str | None]:
        parent_value, ancestor_root_id = await _resolve_parent(repo, data)
        operator = Operator.create(data.operator)
        operation = CalculationOperation.create(
            parent_root_id=data.parent_root_id,
            parent_operation_id=data.parent_operation_id,
            operator=operator,
            operand=data.operand,
            parent_value=parent_value,
            user_id=data.user_id,
            username=data.username,
        )
        await repo.save_operation(operation)
        return operation, ancestor_root_id

    async def _remove_root(
        self, repo: CalculationRepository, root_id: str,
    ) -> list[str]:
        root = await repo.find_root_with_operations(root_id)
        if root is None:
            raise ResourceNotFoundError(
                "CalculationRoot", root_id, ErrorContext(root_id=root_id),
            )
        operation_ids = []
        stack = list(root.operations)
        while stack:
            operation = stack.pop()
            operation_ids.append(operation.id)
            stack.extend(operation.children)
        await repo.delete_root(root_id)
        return operation_ids

    # ─── Background Cache Writes ─────────────────────────────────

    def _cache_in_background(self, key: str, value: Any, ttl: int) -> None:
        task = asyncio.create_task(self.cache.set(key, value, ttl))
        self._pending_cache_writes.add(task)
        task.add_done_callback(self._on_cache_write_done)

    def _on_cache_write_done(self, task: asyncio.Task) -> None:
        self._pending_cache_writes.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(
                f"Background cache write failed: {task.exception()}",
            )


async def _resolve_parent(
    repo: CalculationRepository, data: CreateOperationInput,
) -> tuple[float, str | None]:
    """Current parent value plus the id of the root the new operation lands under."""
    if data.parent_root_id:
        root = await repo.find_root_by_id(data.parent_root_id)
        if root is None:
            raise ParentRootNotFoundError(data.parent_root_id)
        return root.value, root.id

    parent = await repo.find_operation_by_id(data.parent_operation_id)
    if parent is None:
        raise ParentOperationNotFoundError(data.parent_operation_id)
    ancestor = parent
    while ancestor is not None and ancestor.parent_operation_id:
        ancestor = await repo.find_operation_by_id(ancestor.parent_operation_id)
    return parent.result, ancestor.parent_root_id if ancestor else None


def _parent_scoped_keys(data: CreateOperationInput) -> list[str]:
    keys = [CacheKeys.FULL_TREE]
    if data.parent_root_id:
        keys += [
            CacheKeys.ROOT(data.parent_root_id),
            CacheKeys.ROOT_OPERATIONS(data.parent_root_id),
        ]
    if data.parent_operation_id:
        keys += [
            CacheKeys.OPERATION(data.parent_operation_id),
            CacheKeys.OPERATION_CHILDREN(data.parent_operation_id),
        ]
    return keys


def _tree_keys(root_id: str | None) -> list[str]:
    """Keys holding a whole tree that a new operation under root_id makes stale."""
    keys = [CacheKeys.FULL_TREE]
    if root_id:
        keys.append(CacheKeys.ROOT(root_id))
    return keys
