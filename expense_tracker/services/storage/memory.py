"""
In-Memory Storage Implementation

DESIGN DECISION: The reference store lives in process memory:
- State is created at startup and discarded at shutdown
- No persistence guarantees beyond process lifetime
- A single lock guards the id counter and the record map together,
  because create is a read-modify-write on the counter

The implementation follows the abstract interface, so a database
backend can replace it without changing business logic.
"""

import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseCreate,
    ExpenseUpdate,
)
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """
    Dict-backed expense store.

    Ids start at 1 and are never reused, even after deletion.
    Returned expenses are copies - mutating them does not touch the store.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._expenses: dict[int, Expense] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        self._clock = clock or _utc_now

    def _touch(self, previous: datetime) -> datetime:
        """A fresh updated_at that is strictly later than the previous one."""
        now = self._clock()
        if now <= previous:
            now = previous + timedelta(microseconds=1)
        return now

    async def list_expenses(
        self,
        category: Optional[ExpenseCategory] = None,
    ) -> list[Expense]:
        with self._lock:
            expenses = list(self._expenses.values())

        if category is not None:
            expenses = [e for e in expenses if e.category == category]

        # Newest first; ids break timestamp ties in insertion order
        expenses.sort(key=lambda e: (e.created_at, e.id), reverse=True)
        return [e.model_copy() for e in expenses]

    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        with self._lock:
            expense = self._expenses.get(expense_id)
        return expense.model_copy() if expense else None

    async def create_expense(self, data: ExpenseCreate) -> Expense:
        with self._lock:
            now = self._clock()
            expense = Expense(
                id=self._next_id,
                date=data.date,
                vendor=data.vendor,
                amount=data.amount,
                description=data.description,
                category=data.category or None,
                deductibility=data.deductibility or None,
                created_at=now,
                updated_at=now,
            )
            self._expenses[expense.id] = expense
            self._next_id += 1

        logger.debug("expense_stored", expense_id=expense.id)
        return expense.model_copy()

    async def update_expense(
        self,
        expense_id: int,
        patch: ExpenseUpdate,
    ) -> Optional[Expense]:
        with self._lock:
            existing = self._expenses.get(expense_id)
            if existing is None:
                return None

            changes = patch.to_patch()
            changes["updated_at"] = self._touch(existing.updated_at)
            updated = existing.model_copy(update=changes)
            self._expenses[expense_id] = updated

        return updated.model_copy()

    async def delete_expense(self, expense_id: int) -> bool:
        with self._lock:
            return self._expenses.pop(expense_id, None) is not None

    async def bulk_create_expenses(
        self,
        items: list[ExpenseCreate],
    ) -> list[Expense]:
        created = []
        for index, item in enumerate(items):
            try:
                created.append(await self.create_expense(item))
            except StorageError as e:
                # Keep going - earlier items are already stored
                logger.error(
                    "bulk_create_item_failed",
                    index=index,
                    vendor=item.vendor,
                    error=str(e),
                )
        return created

    async def get_expenses_by_date_range(
        self,
        start_date: str,
        end_date: str,
    ) -> list[Expense]:
        expenses = await self.list_expenses()
        return [e for e in expenses if start_date <= e.date <= end_date]


class InMemoryAuditStorage(AuditStorageInterface):
    """
    Bounded in-memory audit trail.

    Oldest events fall off once max_events is reached.
    """

    def __init__(self, max_events: int = 500):
        self._events: deque[AuditEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    async def append_event(self, event: AuditEvent) -> bool:
        with self._lock:
            self._events.append(event)
        return True

    async def get_events_by_expense(self, expense_id: int) -> list[AuditEvent]:
        with self._lock:
            events = [e for e in self._events if e.expense_id == expense_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        with self._lock:
            events = list(self._events)
        events.reverse()
        return events[:limit]
