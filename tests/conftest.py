"""
Shared fixtures for Expense Tracker tests.

No real API calls in tests: the classifier and the record source are
replaced by in-process fakes that record how they were called.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

import pytest

from expense_tracker.agents import (
    CategorySuggestion,
    ClassifierError,
    DeductibilitySuggestion,
    ExpenseClassifier,
    ExpenseInsights,
    InsightInput,
)
from expense_tracker.audit import AuditLogger
from expense_tracker.models.expense import (
    Deductibility,
    Expense,
    ExpenseCategory,
)
from expense_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    RecordSourceError,
    RecordSourceInterface,
)


class FakeClassifier(ExpenseClassifier):
    """Deterministic classifier. Fails for the vendors it is told to."""

    def __init__(
        self,
        category: ExpenseCategory = ExpenseCategory.SOFTWARE,
        deductibility: Deductibility = Deductibility.FULLY_DEDUCTIBLE,
        confidence: Any = 0.9,
        fail_vendors: tuple[str, ...] = (),
        fail_all: bool = False,
        configured: bool = True,
    ):
        self.category = category
        self.deductibility = deductibility
        self.confidence = confidence
        self.fail_vendors = set(fail_vendors)
        self.fail_all = fail_all
        self.configured = configured
        self.category_calls: list[tuple[str, str, Decimal]] = []
        self.deductibility_calls: list[tuple[str, str, Decimal, ExpenseCategory]] = []
        self.summarized: Optional[list[InsightInput]] = None

    @property
    def is_configured(self) -> bool:
        return self.configured

    def _check(self, vendor: str) -> None:
        if self.fail_all or vendor in self.fail_vendors:
            raise ClassifierError(f"Classifier unavailable for {vendor}")

    async def classify_category(self, description, vendor, amount):
        self.category_calls.append((description, vendor, amount))
        self._check(vendor)
        return CategorySuggestion(category=self.category, confidence=self.confidence)

    async def classify_deductibility(self, description, vendor, amount, category):
        self.deductibility_calls.append((description, vendor, amount, category))
        self._check(vendor)
        return DeductibilitySuggestion(
            deductibility=self.deductibility,
            reasoning="Used for business",
            confidence=self.confidence,
        )

    async def summarize(self, expenses):
        self.summarized = list(expenses)
        if self.fail_all:
            raise ClassifierError("Classifier unavailable")
        return ExpenseInsights(summary=f"{len(expenses)} expenses reviewed")

    @property
    def call_count(self) -> int:
        return len(self.category_calls) + len(self.deductibility_calls)


class FakeRecordSource(RecordSourceInterface):
    """In-memory stand-in for the spreadsheet."""

    def __init__(
        self,
        rows: Optional[list[dict[str, Any]]] = None,
        fail_read: bool = False,
        fail_write: bool = False,
        connected: bool = True,
    ):
        self.rows = rows or []
        self.fail_read = fail_read
        self.fail_write = fail_write
        self.connected = connected
        self.written: Optional[list[Expense]] = None

    async def read_all(self):
        if self.fail_read:
            raise RecordSourceError("Spreadsheet unreachable")
        return list(self.rows)

    async def write_all(self, expenses):
        if self.fail_write:
            raise RecordSourceError("Spreadsheet is read-only")
        self.written = list(expenses)

    async def test_connection(self):
        return self.connected


@pytest.fixture
def fixed_now():
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def storage():
    return InMemoryExpenseStorage()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def record_source():
    return FakeRecordSource()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def make_payload():
    """Factory for a valid create payload, with overrides."""
    def _make(**overrides) -> dict[str, Any]:
        payload = {
            "date": "2024-05-14",
            "vendor": "Figma",
            "amount": "15.00",
            "description": "Design tool subscription",
        }
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture
def make_expense(fixed_now):
    """Factory for a persisted-looking Expense, for pure functions."""
    def _make(expense_id: int = 1, amount: str = "10.00", **overrides) -> Expense:
        fields = {
            "id": expense_id,
            "date": "2024-05-14",
            "vendor": "Vendor",
            "amount": Decimal(amount),
            "description": "",
            "created_at": fixed_now,
            "updated_at": fixed_now,
        }
        fields.update(overrides)
        return Expense(**fields)
    return _make
