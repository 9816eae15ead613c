"""Services package."""

from expense_tracker.services.storage import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    GoogleSheetsClient,
    GoogleSheetsRecordSource,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    NotFoundError,
    RecordSourceError,
    RecordSourceInterface,
    RecordSourceNotConfiguredError,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "GoogleSheetsClient",
    "GoogleSheetsRecordSource",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "NotFoundError",
    "RecordSourceError",
    "RecordSourceInterface",
    "RecordSourceNotConfiguredError",
    "StorageError",
]
