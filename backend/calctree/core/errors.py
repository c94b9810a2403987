"""Error Hierarchy — typed, categorized exceptions for all calculation-tree failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400/404-level) are user-actionable; infrastructure errors (500-level) are critical
    - to_response() produces the REST error envelope
    - CacheError never reaches a caller: the resilient cache wrapper logs and swallows it

Design Decisions:
    - Single hierarchy with CalcTreeError base: FastAPI global handler catches all (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone

from calctree.core.domain_types import OPERATOR_NAMES


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    CACHE = "cache"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    root_id: str | None = None
    operation_id: str | None = None
    user_id: str | None = None
    debug_info: dict[str, Any] | None = None


class CalcTreeError(Exception):
    """Base exception for all calculation-tree errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "root_id": self.context.root_id,
                    "operation_id": self.context.operation_id,
                },
            }
        }


# ─── Validation Errors (400-level) ──────────────────────────────

class InvalidValueError(CalcTreeError):
    """Value is NaN, infinite, or too large for the decimal columns."""
    def __init__(self, value: object, context: ErrorContext | None = None):
        super().__init__(
            f"Value must be a finite number below 1e10 in magnitude, got {value!r}",
            "INVALID_VALUE", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.value = value


class InvalidOperatorError(CalcTreeError):
    """Operator name is not one of the canonical names."""
    def __init__(self, raw: object, context: ErrorContext | None = None):
        super().__init__(
            f"Invalid operator: {raw}. Must be one of: {', '.join(OPERATOR_NAMES)}",
            "INVALID_OPERATOR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.raw = raw


class DivisionByZeroError(CalcTreeError):
    """DIVIDE requested with a zero operand."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Division by zero is not allowed",
            "DIVISION_BY_ZERO", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )


class MissingParentError(CalcTreeError):
    """Operation declared neither a parent root nor a parent operation."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Operation must have a parent (root or operation)",
            "MISSING_PARENT", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


class AmbiguousParentError(CalcTreeError):
    """Operation declared both a parent root and a parent operation."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Operation cannot have both root and operation parent",
            "AMBIGUOUS_PARENT", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


# ─── Not Found Errors (404-level) ───────────────────────────────

class ResourceNotFoundError(CalcTreeError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ParentRootNotFoundError(CalcTreeError):
    """Referenced parent root does not exist at write time."""
    def __init__(self, root_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.root_id = root_id
        super().__init__(
            f"Parent root not found: {root_id}",
            "PARENT_ROOT_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, ctx, 404,
        )
        self.root_id = root_id


class ParentOperationNotFoundError(CalcTreeError):
    """Referenced parent operation does not exist at write time."""
    def __init__(self, operation_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.operation_id = operation_id
        super().__init__(
            f"Parent operation not found: {operation_id}",
            "PARENT_OPERATION_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, ctx, 404,
        )
        self.operation_id = operation_id


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(CalcTreeError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class CacheError(CalcTreeError):
    """Cache backend operation failed (swallowed by ResilientCache)."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cache {operation} failed: {message}",
            "CACHE_ERROR", ErrorCategory.CACHE,
            ErrorSeverity.WARNING, context, 500,
        )
        self.operation = operation
