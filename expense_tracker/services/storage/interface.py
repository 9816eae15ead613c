"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for every place data lives.
This allows us to:
1. Swap the in-memory store for a real database later
2. Use fakes for the spreadsheet in tests
3. Keep business logic decoupled from storage implementation

There are three kinds of storage:
- ExpenseStorageInterface: the canonical set of expenses (sole authority
  over ids and timestamps)
- RecordSourceInterface: an external copy of expenses (a spreadsheet)
  used for import and export only
- AuditStorageInterface: append-only audit trail
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseCreate,
    ExpenseUpdate,
)


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage operations.

    Validation happens before these methods are called - the store
    never rejects a well-typed payload on business grounds.
    """

    @abstractmethod
    async def list_expenses(
        self,
        category: Optional[ExpenseCategory] = None,
    ) -> list[Expense]:
        """
        List expenses, most recently created first.

        Args:
            category: Only return expenses in this category

        Returns:
            Expenses ordered by created_at descending
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        """
        Retrieve an expense by its ID.

        Returns:
            The expense if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_expense(self, data: ExpenseCreate) -> Expense:
        """
        Persist a new expense.

        Assigns the next id and sets created_at = updated_at = now.

        Raises:
            StorageError: If the backend fails
        """
        pass

    @abstractmethod
    async def update_expense(
        self,
        expense_id: int,
        patch: ExpenseUpdate,
    ) -> Optional[Expense]:
        """
        Merge the explicitly-set fields of patch onto an expense.

        id and created_at are never changed; updated_at always advances.

        Returns:
            The updated expense, or None if it doesn't exist
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: int) -> bool:
        """
        Delete an expense permanently.

        Returns:
            True if an expense was removed
        """
        pass

    @abstractmethod
    async def bulk_create_expenses(
        self,
        items: list[ExpenseCreate],
    ) -> list[Expense]:
        """
        Create each item in order.

        Not atomic: a failing item is skipped, earlier items stay.

        Returns:
            The expenses actually created
        """
        pass

    @abstractmethod
    async def get_expenses_by_date_range(
        self,
        start_date: str,
        end_date: str,
    ) -> list[Expense]:
        """
        Expenses dated within [start_date, end_date], inclusive.

        Dates are YYYY-MM-DD strings so string comparison is correct.
        """
        pass


class RecordSourceInterface(ABC):
    """
    Abstract interface for an external copy of the expenses.

    Not being configured is a normal state: test_connection() returns
    False and reads/writes raise RecordSourceNotConfiguredError.
    """

    @abstractmethod
    async def read_all(self) -> list[dict[str, Any]]:
        """
        Read every candidate expense row.

        Rows are raw field sets - they have not been validated.

        Raises:
            RecordSourceError: If the source can't be read
        """
        pass

    @abstractmethod
    async def write_all(self, expenses: list[Expense]) -> None:
        """
        Replace the source's contents with these expenses.

        Raises:
            RecordSourceError: If the source can't be written
        """
        pass

    @abstractmethod
    async def test_connection(self) -> bool:
        """True if the source is configured and reachable. Never raises."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_expense(self, expense_id: int) -> list[AuditEvent]:
        """
        Get all events for one expense, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class RecordSourceError(StorageError):
    """The external record source failed."""
    pass


class RecordSourceNotConfiguredError(RecordSourceError):
    """No credentials / spreadsheet configured for the record source."""
    pass
