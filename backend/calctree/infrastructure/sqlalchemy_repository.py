"""SQLAlchemy Calculation Repository — CalculationRepository over an AsyncSession.

Invariants:
    - Bound to one AsyncSession; transaction scope belongs to the unit of work
    - Roots load newest first; operations load oldest first (sibling order = creation order)
    - Trees are assembled by core/tree_assembly.py, never by ORM relationship loading
    - Writes flush immediately so constraint violations surface inside the transaction

Design Decisions:
    - Single-root tree load reads all operations and filters by closure: parent pointers give
      no per-root operation query (ADR: no recursive CTE, keep SQLite tests representative)
    - Deletes rely on ON DELETE CASCADE for descendants
"""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from calctree.core.calculation_operation import CalculationOperation
from calctree.core.calculation_root import CalculationRoot
from calctree.core.tree_assembly import assemble_forest, assemble_tree
from calctree.models.calculation_operation import CalculationOperationRecord
from calctree.models.calculation_root import CalculationRootRecord


class SqlAlchemyCalculationRepository:
    """Calculation persistence backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Queries ─────────────────────────────────────────────────

    async def find_all_roots_with_operations(self) -> list[CalculationRoot]:
        result = await self.db.execute(
            select(CalculationRootRecord).order_by(
                CalculationRootRecord.created_at.desc(),
            ),
        )
        roots = [_to_root(row) for row in result.scalars().all()]
        return assemble_forest(roots, await self._load_all_operations())

    async def find_root_by_id(self, root_id: str) -> CalculationRoot | None:
        row = await self.db.get(CalculationRootRecord, root_id)
        return _to_root(row) if row else None

    async def find_root_with_operations(
        self, root_id: str,
    ) -> CalculationRoot | None:
        root = await self.find_root_by_id(root_id)
        if root is None:
            return None
        return assemble_tree(root, await self._load_all_operations())

    async def find_operation_by_id(
        self, operation_id: str,
    ) -> CalculationOperation | None:
        row = await self.db.get(CalculationOperationRecord, operation_id)
        return _to_operation(row) if row else None

    async def find_operations_by_root_id(
        self, root_id: str,
    ) -> list[CalculationOperation]:
        result = await self.db.execute(
            select(CalculationOperationRecord)
            .where(CalculationOperationRecord.parent_root_id == root_id)
            .order_by(CalculationOperationRecord.created_at),
        )
        return [_to_operation(row) for row in result.scalars().all()]

    async def find_child_operations(
        self, parent_operation_id: str,
    ) -> list[CalculationOperation]:
        result = await self.db.execute(
            select(CalculationOperationRecord)
            .where(
                CalculationOperationRecord.parent_operation_id == parent_operation_id,
            )
            .order_by(CalculationOperationRecord.created_at),
        )
        return [_to_operation(row) for row in result.scalars().all()]

    # ─── Commands ────────────────────────────────────────────────

    async def save_root(self, root: CalculationRoot) -> None:
        self.db.add(CalculationRootRecord(
            id=root.id,
            value=root.value,
            user_id=root.user_id,
            username=root.username,
            created_at=root.created_at,
            updated_at=root.updated_at,
        ))
        await self.db.flush()

    async def save_operation(self, operation: CalculationOperation) -> None:
        self.db.add(CalculationOperationRecord(
            id=operation.id,
            parent_root_id=operation.parent_root_id,
            parent_operation_id=operation.parent_operation_id,
            operator=operation.operator,
            operand=operation.operand,
            result=operation.result,
            user_id=operation.user_id,
            username=operation.username,
            created_at=operation.created_at,
            updated_at=operation.updated_at,
        ))
        await self.db.flush()

    async def delete_root(self, root_id: str) -> None:
        await self.db.execute(
            delete(CalculationRootRecord).where(CalculationRootRecord.id == root_id),
        )

    async def delete_operation(self, operation_id: str) -> None:
        await self.db.execute(
            delete(CalculationOperationRecord).where(
                CalculationOperationRecord.id == operation_id,
            ),
        )

    # ─── Helpers ─────────────────────────────────────────────────

    async def _load_all_operations(self) -> list[CalculationOperation]:
        result = await self.db.execute(
            select(CalculationOperationRecord).order_by(
                CalculationOperationRecord.created_at,
            ),
        )
        return [_to_operation(row) for row in result.scalars().all()]


def _to_root(row: CalculationRootRecord) -> CalculationRoot:
    return CalculationRoot.from_persisted(
        id=row.id,
        value=row.value,
        user_id=row.user_id,
        username=row.username,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_operation(row: CalculationOperationRecord) -> CalculationOperation:
    return CalculationOperation.from_persisted(
        id=row.id,
        parent_root_id=row.parent_root_id,
        parent_operation_id=row.parent_operation_id,
        operator=row.operator,
        operand=row.operand,
        result=row.result,
        user_id=row.user_id,
        username=row.username,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
