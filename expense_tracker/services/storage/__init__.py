"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The expense store is in-memory; Google Sheets is an external record
source for import/export. Both sit behind interfaces so they can be swapped.
"""

from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    NotFoundError,
    RecordSourceError,
    RecordSourceInterface,
    RecordSourceNotConfiguredError,
    StorageError,
)
from expense_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
)
from expense_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRecordSource,
    row_to_fields,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "RecordSourceInterface",
    # Exceptions
    "NotFoundError",
    "RecordSourceError",
    "RecordSourceNotConfiguredError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsRecordSource",
    "row_to_fields",
]
