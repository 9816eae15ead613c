"""
Core Data Models for Expense Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage, syncing and logging

DESIGN DECISION: Amounts are Decimal, quantized to 2 places, everywhere.
Binary floats never touch money - sums over hundreds of expenses must
not drift by a cent.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


CENT = Decimal("0.01")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported tax bookkeeping categories.

    DESIGN DECISION: Using explicit categories rather than free text ensures
    consistent categorization and reliable aggregation.
    """
    MARKETING = "Marketing"
    OFFICE_SUPPLIES = "Office Supplies"
    TRAVEL = "Travel"
    MEALS = "Meals"
    SOFTWARE = "Software"
    EDUCATION = "Education"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: str) -> Optional["ExpenseCategory"]:
        """Case-insensitive lookup by label. None if unknown."""
        normalized = value.strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return None


class Deductibility(str, Enum):
    """Tax treatment of an expense."""
    FULLY_DEDUCTIBLE = "Fully Deductible"
    PARTIALLY_DEDUCTIBLE = "Partially Deductible"
    NOT_DEDUCTIBLE = "Not Deductible"

    @classmethod
    def parse(cls, value: str) -> Optional["Deductibility"]:
        """Case-insensitive lookup by label. None if unknown."""
        normalized = value.strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return None


def to_money(value: Decimal) -> Decimal:
    """Quantize to cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    """Render an amount with exactly two decimal places."""
    return f"{to_money(value):.2f}"


# =============================================================================
# EXPENSE PAYLOADS
# =============================================================================

class _ExpenseFieldRules(BaseModel):
    """Validation shared by every model carrying expense fields."""

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator('date', mode='before', check_fields=False)
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        """Accept date objects, store the YYYY-MM-DD string."""
        if isinstance(v, datetime):
            return v.date().isoformat()
        if isinstance(v, date):
            return v.isoformat()
        return v

    @field_validator('date', check_fields=False)
    @classmethod
    def validate_calendar_date(cls, v: Optional[str]) -> Optional[str]:
        """The pattern alone lets 2024-02-31 through."""
        if v is not None:
            try:
                date.fromisoformat(v)
            except ValueError:
                raise ValueError(f"Not a valid calendar date: {v}")
        return v

    @field_validator('category', 'deductibility', mode='before', check_fields=False)
    @classmethod
    def blank_label_is_absent(cls, v: Any) -> Any:
        """An empty label means unclassified."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('amount', check_fields=False)
    @classmethod
    def quantize_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        """Store amounts with exactly two decimal places."""
        if v is not None:
            return to_money(v)
        return v


class ExpenseCreate(_ExpenseFieldRules):
    """
    Fields needed to create an expense.

    category / deductibility are optional - when category is missing
    the classifier will be asked for one after the expense is saved.
    """

    date: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        description="Expense date (YYYY-MM-DD)"
    )
    vendor: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Vendor name"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        max_digits=10,
        description="Amount spent"
    )
    description: str = Field(
        ...,
        max_length=1000,
        description="What the expense was for (may be empty)"
    )
    category: Optional[ExpenseCategory] = None
    deductibility: Optional[Deductibility] = None


class ExpenseUpdate(_ExpenseFieldRules):
    """
    Partial update of an expense.

    Only fields that were explicitly provided are applied -
    use model_dump(exclude_unset=True) to get the patch.
    """

    date: Optional[str] = Field(
        default=None,
        pattern=r"^\d{4}-\d{2}-\d{2}$",
    )
    vendor: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=200,
    )
    amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        max_digits=10,
    )
    description: Optional[str] = Field(
        default=None,
        max_length=1000,
    )
    category: Optional[ExpenseCategory] = None
    deductibility: Optional[Deductibility] = None

    @field_validator('date', 'vendor', 'amount', 'description', mode='before')
    @classmethod
    def required_fields_cannot_be_cleared(cls, v: Any) -> Any:
        """Omit a required field to keep it; null is not a value for it."""
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# =============================================================================
# CORE EXPENSE MODEL
# =============================================================================

class Expense(BaseModel):
    """
    A persisted expense.

    Only the store creates these: it assigns the id and timestamps.
    A missing category means "pending classification" - that is a
    normal state, not an error.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    id: int = Field(
        ...,
        ge=1,
        description="Store-assigned identifier, never reused"
    )
    date: str
    vendor: str
    amount: Decimal
    description: str
    category: Optional[ExpenseCategory] = None
    deductibility: Optional[Deductibility] = None

    created_at: datetime = Field(
        ...,
        description="When the expense was created (UTC)"
    )
    updated_at: datetime = Field(
        ...,
        description="Last mutation timestamp (UTC)"
    )

    @property
    def is_pending_classification(self) -> bool:
        return self.category is None

    @property
    def needs_classification(self) -> bool:
        """Either half of the classification is missing."""
        return self.category is None or self.deductibility is None

    def to_sheets_row(self) -> list[str]:
        """
        Convert to a row for the Google Sheets record source.

        Columns: [date, vendor, amount, description, category, deductibility]
        """
        return [
            self.date,
            self.vendor,
            format_money(self.amount),
            self.description,
            self.category.value if self.category else "",
            self.deductibility.value if self.deductibility else "",
        ]


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'value_error')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


# =============================================================================
# OPERATION RESULTS
# =============================================================================

class BulkClassifyResult(BaseModel):
    """Summary of a bulk classification run ("updated N of M")."""

    candidates: int = Field(ge=0)
    updated: int = Field(ge=0)
    failed_ids: list[int] = Field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Successfully categorized {self.updated} of {self.candidates} expenses"


class ImportResult(BaseModel):
    """Summary of a bulk import from a record source."""

    success: bool = True
    imported: int = Field(default=0, ge=0)
    skipped_incomplete: int = Field(
        default=0,
        ge=0,
        description="Rows missing date, vendor or amount (dropped silently)"
    )
    rejected_invalid: int = Field(
        default=0,
        ge=0,
        description="Rows with all required fields present but failing validation"
    )
    error_message: Optional[str] = None

    @property
    def message(self) -> str:
        if not self.success:
            return f"Import failed: {self.error_message}"
        return f"Successfully imported {self.imported} expenses"


class ExportResult(BaseModel):
    """Summary of an export to a record source."""

    success: bool = True
    exported: int = Field(default=0, ge=0)
    error_message: Optional[str] = None

    @property
    def message(self) -> str:
        if not self.success:
            return f"Export failed: {self.error_message}"
        return f"Successfully exported {self.exported} expenses"


class ConnectionStatus(BaseModel):
    """Which external collaborators are usable right now."""

    classifier_configured: bool
    record_source_connected: bool


# =============================================================================
# AGGREGATION MODELS
# =============================================================================

class DashboardStats(BaseModel):
    """Headline numbers for the dashboard. Money is pre-formatted."""

    total_expenses: str
    deductible_amount: str
    categorized_count: int = Field(ge=0)
    ai_accuracy: str


class DeductibilityBucket(BaseModel):
    """Total and count of expenses with one tax treatment."""

    deductibility: Deductibility
    amount: str
    count: int = Field(ge=0)


class TaxSummary(BaseModel):
    """One bucket per Deductibility value, in enum order."""

    buckets: list[DeductibilityBucket]

    def bucket(self, deductibility: Deductibility) -> DeductibilityBucket:
        for item in self.buckets:
            if item.deductibility == deductibility:
                return item
        raise KeyError(deductibility)


class CategoryTotal(BaseModel):
    """Spending in one category."""

    category: ExpenseCategory
    amount: str
    count: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)
