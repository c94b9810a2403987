"""CalculationRootRecord ORM — persists the starting number of a calculation tree.

Invariants:
    - id is opaque text (uuid4 generated by the domain factory, never by the database)
    - value is Numeric(20, 10): 10 integer digits, 10 fractional digits
    - Deleting a root cascades (database-level) to every descendant operation

Design Decisions:
    - asdecimal=False: entities work in float; the decimal column only bounds precision at rest
    - Magnitude bound enforced by the domain (MAX_MAGNITUDE) so overflow is INVALID_VALUE, not a DB error
    - username denormalized: display label survives without a users table (auth is external)
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from calctree.db.base import Base


class CalculationRootRecord(Base):
    """Row for a calculation root."""
    __tablename__ = "calculation_root"
    __table_args__ = (
        Index("calculation_root_user_id_idx", "user_id"),
        Index("calculation_root_created_at_idx", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[float] = mapped_column(
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
