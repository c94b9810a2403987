"""ORM Models — SQLAlchemy declarative models for calculation trees.

Invariants:
    - All models inherit from Base (db/base.py)
    - CalculationRootRecord is the aggregate root; operations reference it or each other

Design Decisions:
    - One file per table for locality
    - Record suffix: keeps ORM rows apart from the domain entities in core/
"""

from calctree.models.calculation_root import CalculationRootRecord  # noqa: F401
from calctree.models.calculation_operation import CalculationOperationRecord  # noqa: F401
