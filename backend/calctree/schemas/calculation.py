"""Calculation Schemas — Pydantic request/response models for the calculation API.

Invariants:
    - RootCreate.value and OperationCreate.operand are finite numbers (inf/nan rejected at the boundary)
    - OperationCreate.operator stays a plain string: the domain rejects unknown names with INVALID_OPERATOR
    - Parent cardinality is NOT checked here: the service raises MISSING_PARENT / AMBIGUOUS_PARENT
    - Responses are built from entities via from_entity(), never from ORM rows

Design Decisions:
    - Recursive OperationResponse mirrors the in-memory tree (children nested, creation order)
    - Timestamps serialized by Pydantic as ISO 8601
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from calctree.core.calculation_operation import CalculationOperation
from calctree.core.calculation_root import CalculationRoot


class RootCreate(BaseModel):
    """Starting number for a new calculation tree."""
    value: float = Field(allow_inf_nan=False)


class OperationCreate(BaseModel):
    """Reply to a root or to another operation."""
    operator: str = Field(min_length=1, max_length=16)
    operand: float = Field(allow_inf_nan=False)
    parent_root_id: str | None = Field(None, max_length=64)
    parent_operation_id: str | None = Field(None, max_length=64)

    @field_validator("parent_root_id", "parent_operation_id")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v


class OperationResponse(BaseModel):
    """Operation node with its nested replies."""
    id: str
    parent_root_id: str | None
    parent_operation_id: str | None
    operator: str
    operand: float
    result: float
    display: str
    user_id: str
    username: str | None
    created_at: datetime
    updated_at: datetime
    children: list["OperationResponse"] = []

    @classmethod
    def from_entity(cls, operation: CalculationOperation) -> "OperationResponse":
        return cls(
            id=operation.id,
            parent_root_id=operation.parent_root_id,
            parent_operation_id=operation.parent_operation_id,
            operator=operation.operator.value,
            operand=operation.operand,
            result=operation.result,
            display=operation.display_string(),
            user_id=operation.user_id,
            username=operation.username,
            created_at=operation.created_at,
            updated_at=operation.updated_at,
            children=[cls.from_entity(child) for child in operation.children],
        )


class RootResponse(BaseModel):
    """Root with its full operation tree."""
    id: str
    value: float
    user_id: str
    username: str | None
    created_at: datetime
    updated_at: datetime
    total_operation_count: int
    operations: list[OperationResponse] = []

    @classmethod
    def from_entity(cls, root: CalculationRoot) -> "RootResponse":
        return cls(
            id=root.id,
            value=root.value,
            user_id=root.user_id,
            username=root.username,
            created_at=root.created_at,
            updated_at=root.updated_at,
            total_operation_count=root.total_operation_count(),
            operations=[
                OperationResponse.from_entity(op) for op in root.operations
            ],
        )
