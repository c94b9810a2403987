"""CalculationOperation — a tree node applying one operator/operand to its parent's value.

Invariants:
    - Exactly one of parent_root_id / parent_operation_id is set
    - result == operator.calculate(parent_value, operand), evaluated once at creation (a snapshot)
    - operator.is_valid_with(operand) holds at creation (division-by-zero guard)
    - operand and result are storable numbers (finite, |x| < MAX_MAGNITUDE) or InvalidValueError
    - All fields are immutable; only the children list changes, and only during tree assembly

Design Decisions:
    - frozen dataclass + private list mutated in place: business fields are tamper-proof while
      tree assembly can still bulk-replace or append children
    - Caller supplies parent_value: resolving the parent is a service concern (needs IO)
    - from_persisted() skips validation: rows and cache records are trusted sources
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from calctree.core.domain_types import (
    OperationId, RootId, UserId, is_storable_number,
)
from calctree.core.errors import (
    AmbiguousParentError, DivisionByZeroError, InvalidValueError, MissingParentError,
)
from calctree.core.operator import Operator


def format_number(number: float) -> str:
    """Render integral floats without a trailing .0 (150.0 -> "150")."""
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return repr(number) if isinstance(number, float) else str(number)


@dataclass(frozen=True)
class CalculationOperation:
    """Operation entity — a reply to a root or to another operation."""
    id: OperationId
    parent_root_id: RootId | None
    parent_operation_id: OperationId | None
    operator: Operator
    operand: float
    result: float
    user_id: UserId
    username: str | None
    created_at: datetime
    updated_at: datetime
    _children: list["CalculationOperation"] = field(
        default_factory=list, init=False, repr=False, hash=False,
    )

    @classmethod
    def create(
        cls,
        *,
        operator: Operator,
        operand: float,
        parent_value: float,
        user_id: str,
        parent_root_id: str | None = None,
        parent_operation_id: str | None = None,
        username: str | None = None,
    ) -> "CalculationOperation":
        """Validate parent cardinality and operand, then snapshot the result."""
        if not parent_root_id and not parent_operation_id:
            raise MissingParentError()
        if parent_root_id and parent_operation_id:
            raise AmbiguousParentError()
        if not is_storable_number(operand):
            raise InvalidValueError(operand)
        if not operator.is_valid_with(operand):
            raise DivisionByZeroError()

        result = operator.calculate(parent_value, operand)
        if not is_storable_number(result):
            raise InvalidValueError(result)

        now = datetime.now(timezone.utc)
        return cls(
            id=OperationId(str(uuid.uuid4())),
            parent_root_id=RootId(parent_root_id) if parent_root_id else None,
            parent_operation_id=(
                OperationId(parent_operation_id) if parent_operation_id else None
            ),
            operator=operator,
            operand=float(operand),
            result=float(result),
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
        parent_root_id: str | None,
        parent_operation_id: str | None,
        operator: Operator | str,
        operand: float,
        result: float,
        user_id: str,
        username: str | None = None,
        created_at: datetime,
        updated_at: datetime,
    ) -> "CalculationOperation":
        return cls(
            id=OperationId(id),
            parent_root_id=RootId(parent_root_id) if parent_root_id else None,
            parent_operation_id=(
                OperationId(parent_operation_id) if parent_operation_id else None
            ),
            operator=Operator.from_known(operator),
            operand=float(operand),
            result=float(result),
            user_id=UserId(user_id),
            username=username,
            created_at=created_at,
            updated_at=updated_at,
        )

    @property
    def children(self) -> tuple["CalculationOperation", ...]:
        return tuple(self._children)

    def set_children(self, children: list["CalculationOperation"]) -> None:
        self._children[:] = children

    def add_child(self, child: "CalculationOperation") -> None:
        self._children.append(child)

    def display_string(self) -> str:
        """e.g. "+ 5 = 47"."""
        return (
            f"{self.operator.display_symbol} {format_number(self.operand)}"
            f" = {format_number(self.result)}"
        )

    def serialize(self) -> dict:
        return {
            "id": self.id,
            "parent_root_id": self.parent_root_id,
            "parent_operation_id": self.parent_operation_id,
            "operator": self.operator.value,
            "operand": self.operand,
            "result": self.result,
            "user_id": self.user_id,
            "username": self.username,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "children": [child.serialize() for child in self._children],
        }
