"""Operator — immutable value type for the 4 arithmetic operations.

Invariants:
    - create() accepts exactly the canonical names (case-sensitive), anything else raises InvalidOperatorError
    - calculate() is total except DIVIDE with operand == 0 (DivisionByZeroError, checked before dividing)
    - is_valid_with() is False only for DIVIDE with operand == 0
    - Pure: no IO, no state

Design Decisions:
    - str Enum: members are singletons (immutability and equality for free) and the
      value doubles as the persisted enum column and the JSON wire value
"""

from enum import Enum

from calctree.core.errors import DivisionByZeroError, InvalidOperatorError


class Operator(str, Enum):
    """Arithmetic operator applied by a calculation operation."""
    ADD = "ADD"
    SUBTRACT = "SUBTRACT"
    MULTIPLY = "MULTIPLY"
    DIVIDE = "DIVIDE"

    @classmethod
    def create(cls, raw: object) -> "Operator":
        """Parse a caller-supplied operator name. Raises InvalidOperatorError."""
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            raise InvalidOperatorError(raw)
        try:
            return cls(raw)
        except ValueError:
            raise InvalidOperatorError(raw) from None

    @classmethod
    def from_known(cls, variant: "Operator | str") -> "Operator":
        """Trusted lookup for values read back from persistence or cache."""
        return variant if isinstance(variant, cls) else cls[variant]

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    @property
    def display_symbol(self) -> str:
        return _DISPLAY_SYMBOLS[self]

    def calculate(self, parent_value: float, operand: float) -> float:
        if self is Operator.ADD:
            return parent_value + operand
        if self is Operator.SUBTRACT:
            return parent_value - operand
        if self is Operator.MULTIPLY:
            return parent_value * operand
        if operand == 0:
            raise DivisionByZeroError()
        return parent_value / operand

    def is_valid_with(self, operand: float) -> bool:
        return not (self is Operator.DIVIDE and operand == 0)

    def equals(self, other: object) -> bool:
        return isinstance(other, Operator) and self is other

    def __str__(self) -> str:
        return self.value


_SYMBOLS = {
    Operator.ADD: "+",
    Operator.SUBTRACT: "-",
    Operator.MULTIPLY: "*",
    Operator.DIVIDE: "/",
}

_DISPLAY_SYMBOLS = {
    Operator.ADD: "+",
    Operator.SUBTRACT: "−",  # minus sign
    Operator.MULTIPLY: "×",
    Operator.DIVIDE: "÷",
}
