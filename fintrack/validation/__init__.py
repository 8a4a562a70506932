"""Validation package."""

from fintrack.validation.validator import (
    FormValidator,
    ValidationIssue,
    ValidationResult,
    parse_amount,
)

__all__ = [
    "FormValidator",
    "ValidationIssue",
    "ValidationResult",
    "parse_amount",
]
