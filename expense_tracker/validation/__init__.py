"""Payload validation package."""

from expense_tracker.validation.validator import (
    REQUIRED_IMPORT_FIELDS,
    ExpenseValidationError,
    ExpenseValidator,
    has_required_fields,
    issues_from_error,
)

__all__ = [
    "REQUIRED_IMPORT_FIELDS",
    "ExpenseValidationError",
    "ExpenseValidator",
    "has_required_fields",
    "issues_from_error",
]
