"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - RootId, OperationId, UserId wrap opaque strings — ids are uuid4 text, never parsed
    - OPERATOR_NAMES is the single source of the 4 canonical operator names
    - Storable numbers are finite with |x| < MAX_MAGNITUDE (the decimal column bound)

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - String ids over UUID: callers may pass any opaque id, unknown ids resolve to "not found"
      instead of a parse error
"""

import math
from numbers import Real
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

RootId = NewType("RootId", str)
OperationId = NewType("OperationId", str)
UserId = NewType("UserId", str)


# ─── Operator Names ──────────────────────────────────────────────

OPERATOR_NAMES: tuple[str, ...] = ("ADD", "SUBTRACT", "MULTIPLY", "DIVIDE")


# ─── Numeric Bounds ──────────────────────────────────────────────

# Numeric(20, 10) at rest holds at most 10 integer digits
MAX_MAGNITUDE = 1e10


def is_storable_number(number: object) -> bool:
    """Finite real (not bool) whose magnitude fits the persisted decimal columns."""
    return (
        isinstance(number, Real)
        and not isinstance(number, bool)
        and math.isfinite(number)
        and abs(number) < MAX_MAGNITUDE
    )
