"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker system.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.expense import (
    BulkClassifyResult,
    CategoryTotal,
    ConnectionStatus,
    DashboardStats,
    Deductibility,
    DeductibilityBucket,
    Expense,
    ExpenseCategory,
    ExpenseCreate,
    ExpenseUpdate,
    ExportResult,
    ImportResult,
    TaxSummary,
    ValidationIssue,
    format_money,
    to_money,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "BulkClassifyResult",
    "CategoryTotal",
    "ConnectionStatus",
    "DashboardStats",
    "Deductibility",
    "DeductibilityBucket",
    "Expense",
    "ExpenseCategory",
    "ExpenseCreate",
    "ExpenseUpdate",
    "ExportResult",
    "ImportResult",
    "TaxSummary",
    "ValidationIssue",
    "format_money",
    "to_money",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
