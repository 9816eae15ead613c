"""
Audit Models for Expense Tracker

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of who/what changed an expense
2. Debugging information when the classifier or spreadsheet misbehaves
3. A record of enrichment failures, which are otherwise invisible
   to the caller

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expense lifecycle
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Classification
    EXPENSE_CLASSIFIED = "expense_classified"
    CLASSIFICATION_FAILED = "classification_failed"
    BULK_CLASSIFICATION_COMPLETED = "bulk_classification_completed"

    # Record source sync
    IMPORT_COMPLETED = "import_completed"
    EXPORT_COMPLETED = "export_completed"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Which expense this is about, if any
    expense_id: Optional[int] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "expense_id": self.expense_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(expense_id, vendor, amount)
        event = AuditEventBuilder.classification_failed(expense_id, error)
    """

    @staticmethod
    def expense_created(
        expense_id: int,
        vendor: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            expense_id=expense_id,
            description=f"Expense created: {vendor} - ${amount}",
            details={
                "vendor": vendor,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(
        expense_id: int,
        fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            expense_id=expense_id,
            description=f"Expense updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(expense_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            expense_id=expense_id,
            description="Expense deleted",
            is_user_action=True,
        )

    @staticmethod
    def expense_classified(
        expense_id: int,
        category: Optional[str],
        deductibility: Optional[str],
        category_confidence: Optional[float],
        deductibility_confidence: float,
        reasoning: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CLASSIFIED,
            expense_id=expense_id,
            description=f"Expense classified as {category} / {deductibility}",
            details={
                "category": category,
                "deductibility": deductibility,
                "category_confidence": category_confidence,
                "deductibility_confidence": deductibility_confidence,
                "reasoning": reasoning,
            },
        )

    @staticmethod
    def classification_failed(
        expense_id: int,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLASSIFICATION_FAILED,
            severity=AuditSeverity.WARNING,
            expense_id=expense_id,
            description="Classification failed, expense left unclassified",
            error_message=error_message,
        )

    @staticmethod
    def bulk_classification_completed(
        candidates: int,
        updated: int,
        failed_ids: list[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BULK_CLASSIFICATION_COMPLETED,
            severity=AuditSeverity.WARNING if failed_ids else AuditSeverity.INFO,
            description=f"Bulk classification updated {updated} of {candidates} expenses",
            details={
                "candidates": candidates,
                "updated": updated,
                "failed_ids": failed_ids,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_completed(
        imported: int,
        skipped_incomplete: int,
        rejected_invalid: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            description=f"Imported {imported} expenses",
            details={
                "imported": imported,
                "skipped_incomplete": skipped_incomplete,
                "rejected_invalid": rejected_invalid,
            },
            is_user_action=True,
        )

    @staticmethod
    def export_completed(exported: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            description=f"Exported {exported} expenses",
            details={"exported": exported},
            is_user_action=True,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
        )
