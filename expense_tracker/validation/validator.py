"""
Expense Payload Validation

DESIGN DECISION: Validation happens BEFORE the store is touched.
A payload is either fully valid and becomes an ExpenseCreate /
ExpenseUpdate, or it is rejected with every issue listed - it is
never partially applied.

Import rows get one extra, softer stage in front: rows that don't
even carry the required fields are dropped silently, because
spreadsheets are full of blank and half-filled rows.

IMPORTANT: Validation NEVER silently fixes values beyond normalization
(whitespace stripping, cent quantization). It reports them.
"""

from typing import Any, Mapping, Union

from pydantic import ValidationError

from expense_tracker.models.expense import (
    ExpenseCreate,
    ExpenseUpdate,
    ValidationIssue,
)


REQUIRED_IMPORT_FIELDS = ("date", "vendor", "amount")


class ExpenseValidationError(Exception):
    """A payload failed validation. Carries every issue found."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        summary = "; ".join(f"{i.field}: {i.message}" for i in issues)
        super().__init__(f"Invalid expense data: {summary}")


def issues_from_error(error: ValidationError) -> list[ValidationIssue]:
    """Flatten pydantic's error list into ValidationIssues."""
    issues = []
    for err in error.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "payload"
        issue_type = "missing" if err.get("type") == "missing" else err.get("type", "invalid")
        issues.append(ValidationIssue(
            field=location,
            issue_type=issue_type,
            message=err.get("msg", "Invalid value"),
            severity="error",
        ))
    return issues


def has_required_fields(row: Mapping[str, Any]) -> bool:
    """
    True if date, vendor and amount are all present.

    Present means the key exists and is not None. An empty string
    counts as present (and will then fail validation).
    """
    return all(row.get(name) is not None for name in REQUIRED_IMPORT_FIELDS)


class ExpenseValidator:
    """Validates raw payloads into expense models."""

    def validate_create(
        self,
        payload: Union[ExpenseCreate, Mapping[str, Any]],
    ) -> ExpenseCreate:
        """
        Raises:
            ExpenseValidationError: With every issue found
        """
        if isinstance(payload, ExpenseCreate):
            return payload
        try:
            return ExpenseCreate.model_validate(dict(payload))
        except ValidationError as e:
            raise ExpenseValidationError(issues_from_error(e))

    def validate_update(
        self,
        payload: Union[ExpenseUpdate, Mapping[str, Any]],
    ) -> ExpenseUpdate:
        """
        Unknown keys are ignored; only known, provided fields end up
        in the patch.

        Raises:
            ExpenseValidationError: With every issue found
        """
        if isinstance(payload, ExpenseUpdate):
            return payload
        try:
            return ExpenseUpdate.model_validate(dict(payload))
        except ValidationError as e:
            raise ExpenseValidationError(issues_from_error(e))

    def get_user_friendly_summary(self, issues: list[ValidationIssue]) -> str:
        """One line per issue, for showing back to the user."""
        if not issues:
            return "All checks passed."

        lines = ["Please fix the following:"]
        for issue in issues:
            lines.append(f"   • {issue.field}: {issue.message}")
        return "\n".join(lines)
