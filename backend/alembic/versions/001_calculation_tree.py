"""Calculation tree schema — calculation_root and self-referencing calculation_operation.

Revision ID: 001_calculation_tree
Revises: None
Create Date: 2026-10-18

Operations point at exactly one parent (root or operation), enforced by a CHECK
constraint. Both parent FKs cascade so deleting a root removes its whole subtree.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_calculation_tree"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_OPERATOR = sa.Enum("ADD", "SUBTRACT", "MULTIPLY", "DIVIDE", name="operator")


def upgrade() -> None:
    op.create_table(
        "calculation_root",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("value", sa.Numeric(20, 10), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("calculation_root_user_id_idx", "calculation_root", ["user_id"])
    op.create_index("calculation_root_created_at_idx", "calculation_root", ["created_at"])

    op.create_table(
        "calculation_operation",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "parent_root_id", sa.String(64),
            sa.ForeignKey("calculation_root.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column(
            "parent_operation_id", sa.String(64),
            sa.ForeignKey("calculation_operation.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column("operator", _OPERATOR, nullable=False),
        sa.Column("operand", sa.Numeric(20, 10), nullable=False),
        sa.Column("result", sa.Numeric(20, 10), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "(parent_root_id IS NULL) <> (parent_operation_id IS NULL)",
            name="calculation_operation_one_parent_ck",
        ),
    )
    op.create_index("calculation_operation_parent_root_id_idx", "calculation_operation", ["parent_root_id"])
    op.create_index("calculation_operation_parent_operation_id_idx", "calculation_operation", ["parent_operation_id"])
    op.create_index("calculation_operation_user_id_idx", "calculation_operation", ["user_id"])
    op.create_index("calculation_operation_created_at_idx", "calculation_operation", ["created_at"])


def downgrade() -> None:
    op.drop_table("calculation_operation")
    op.drop_table("calculation_root")
    _OPERATOR.drop(op.get_bind(), checkfirst=True)
