"""CalculationOperationRecord ORM — self-referencing tree node below a calculation root.

Invariants:
    - Exactly one of parent_root_id / parent_operation_id is non-null (CHECK constraint)
    - Both parent FKs cascade on delete: removing a root or an operation removes its subtree
    - operand and result are Numeric(20, 10); result is stored, never recomputed
    - Numeric(20, 10) caps magnitude below 1e10; the domain rejects larger numbers before insert

Design Decisions:
    - Parent pointers, no ORM relationships: trees are assembled in core/tree_assembly.py
      from flat rows, the same way cached records are
    - Indexes on both parent columns and created_at: tree loads and listings are ordered scans
"""

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint, DateTime, Enum, ForeignKey, Index, Numeric, String,
)
from sqlalchemy.orm import Mapped, mapped_column

from calctree.core.operator import Operator
from calctree.db.base import Base


class CalculationOperationRecord(Base):
    """Row for a calculation operation."""
    __tablename__ = "calculation_operation"
    __table_args__ = (
        CheckConstraint(
            "(parent_root_id IS NULL) <> (parent_operation_id IS NULL)",
            name="calculation_operation_one_parent_ck",
        ),
        Index("calculation_operation_parent_root_id_idx", "parent_root_id"),
        Index(
            "calculation_operation_parent_operation_id_idx", "parent_operation_id",
        ),
        Index("calculation_operation_user_id_idx", "user_id"),
        Index("calculation_operation_created_at_idx", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    parent_root_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("calculation_root.id", ondelete="CASCADE"),
        nullable=True,
    )
    parent_operation_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("calculation_operation.id", ondelete="CASCADE"),
        nullable=True,
    )
    operator: Mapped[Operator] = mapped_column(
        Enum(Operator, name="operator"), nullable=False,
    )
    operand: Mapped[float] = mapped_column(
        Numeric(20, 10, asdecimal=False), nullable=False,
    )
    result: Mapped[float] = mapped_column(
        Numeric(20, 10, asdecimal=False), nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
