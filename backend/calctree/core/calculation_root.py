"""CalculationRoot — the starting number of a calculation tree (aggregate root).

Invariants:
    - value is finite with |value| < MAX_MAGNITUDE at creation (InvalidValueError otherwise)
    - created_at == updated_at at creation
    - operations holds direct children only; descendants hang off each operation

Design Decisions:
    - Operations are never a constructor argument: they are loaded separately and attached
      afterwards by tree assembly (set_operations / add_operation)
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from calctree.core.calculation_operation import CalculationOperation
from calctree.core.domain_types import RootId, UserId, is_storable_number
from calctree.core.errors import InvalidValueError


@dataclass(frozen=True)
class CalculationRoot:
    """Root entity — a starting value that operations reply to."""
    id: RootId
    value: float
    user_id: UserId
    username: str | None
    created_at: datetime
    updated_at: datetime
    _operations: list[CalculationOperation] = field(
        default_factory=list, init=False, repr=False, hash=False,
    )

    @classmethod
    def create(
        cls, *, value: float, user_id: str, username: str | None = None,
    ) -> "CalculationRoot":
        if not is_storable_number(value):
            raise InvalidValueError(value)

        now = datetime.now(timezone.utc)
        return cls(
            id=RootId(str(uuid.uuid4())),
            value=float(value),
            user_id=UserId(user_id),
            username=username,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def from_persisted(
        cls,
        *,
        id: str,
        value: float,
        user_id: str,
        username: str | None = None,
        created_at: datetime,
        updated_at: datetime,
    ) -> "CalculationRoot":
        return cls(
            id=RootId(id),
            value=float(value),
            user_id=UserId(user_id),
            username=username,
            created_at=created_at,
            updated_at=updated_at,
        )

    @property
    def operations(self) -> tuple[CalculationOperation, ...]:
        return tuple(self._operations)

    def set_operations(self, operations: list[CalculationOperation]) -> None:
        self._operations[:] = operations

    def add_operation(self, operation: CalculationOperation) -> None:
        self._operations.append(operation)

    def total_operation_count(self) -> int:
        """Count every descendant operation exactly once."""
        count = 0
        stack = list(self._operations)
        while stack:
            operation = stack.pop()
            count += 1
            stack.extend(operation.children)
        return count

    def serialize(self) -> dict:
        return {
            "id": self.id,
            "value": self.value,
            "user_id": self.user_id,
            "username": self.username,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "operations": [op.serialize() for op in self._operations],
        }
