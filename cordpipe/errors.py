"""
Dispatch Errors - Exception hierarchy for the dispatch pipeline.

This module provides:
- DispatchError base class
- ValidationFailure, the only error the pipeline recovers from
- Violation records describing a single failed constraint
- GuardRejected for guards that veto by raising
- BindingError for invalid handler registration
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

logger = logging.getLogger(__name__)


# ============================================================================
# Violation Records
# ============================================================================

@dataclass(frozen=True)
class Violation:
    """
    A single violated constraint.

    Attributes:
        field: Name (or dotted path) of the offending parameter field
        rule: Constraint identifier (e.g. "max_length", "int_parsing")
        message: Human-readable explanation
        value: The offending value, if known
    """
    field: str
    rule: str
    message: str = ""
    value: Any = None

    def describe(self) -> str:
        """One-line description used by the default error formatter."""
        if self.message:
            return f"{self.field}: {self.message} ({self.rule})"
        return f"{self.field}: violates {self.rule}"


# ============================================================================
# Exceptions
# ============================================================================

class DispatchError(Exception):
    """Base exception for dispatch pipeline errors."""
    pass


class ValidationFailure(DispatchError):
    """
    Raised by a pipe when message content violates the declared parameter type.

    Carries every violation found plus the raw content that was being piped.
    This is the only failure class the pipeline catches and recovers from.
    """

    def __init__(self, violations: Iterable[Violation], content: Optional[str] = None):
        self.violations: List[Violation] = list(violations)
        self.content = content
        if not self.violations:
            raise ValueError("ValidationFailure requires at least one violation")
        summary = "; ".join(v.describe() for v in self.violations)
        super().__init__(f"Validation failed: {summary}")

    @classmethod
    def from_pydantic(cls, exc, content: Optional[str] = None) -> "ValidationFailure":
        """
        Build a failure from a pydantic ValidationError.

        Args:
            exc: pydantic.ValidationError raised by model validation
            content: The raw message content being validated

        Returns:
            ValidationFailure with one Violation per pydantic error
        """
        violations = []
        for error in exc.errors():
            loc = error.get("loc") or ()
            field_name = ".".join(str(part) for part in loc) or "content"
            violations.append(Violation(
                field=field_name,
                rule=error.get("type", "invalid"),
                message=error.get("msg", ""),
                value=error.get("input"),
            ))
        return cls(violations, content=content)


class GuardRejected(DispatchError):
    """Raised by a guard to veto dispatch; treated the same as returning False."""
    pass


class BindingError(DispatchError):
    """Raised when a handler binding cannot be built."""
    pass
