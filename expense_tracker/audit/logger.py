"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of expense changes
2. Visibility into classification failures, which callers never see
3. A summary trail for imports, exports and bulk runs

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
"""

from typing import Optional

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder
from expense_tracker.models.expense import Expense, format_money
from expense_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, if one is given
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for the audit trail.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_tracker.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_created(self, expense: Expense) -> None:
        await self.log(AuditEventBuilder.expense_created(
            expense_id=expense.id,
            vendor=expense.vendor,
            amount=format_money(expense.amount),
        ))

    async def log_expense_updated(self, expense_id: int, fields: list[str]) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            expense_id=expense_id,
            fields=fields,
        ))

    async def log_expense_deleted(self, expense_id: int) -> None:
        await self.log(AuditEventBuilder.expense_deleted(expense_id))

    async def log_expense_classified(
        self,
        expense: Expense,
        category_confidence: Optional[float],
        deductibility_confidence: float,
        reasoning: str,
    ) -> None:
        """Log a successful classification."""
        await self.log(AuditEventBuilder.expense_classified(
            expense_id=expense.id,
            category=expense.category.value if expense.category else None,
            deductibility=expense.deductibility.value if expense.deductibility else None,
            category_confidence=category_confidence,
            deductibility_confidence=deductibility_confidence,
            reasoning=reasoning,
        ))

    async def log_classification_failed(self, expense_id: int, error_message: str) -> None:
        await self.log(AuditEventBuilder.classification_failed(
            expense_id=expense_id,
            error_message=error_message,
        ))

    async def log_bulk_classification(
        self,
        candidates: int,
        updated: int,
        failed_ids: list[int],
    ) -> None:
        await self.log(AuditEventBuilder.bulk_classification_completed(
            candidates=candidates,
            updated=updated,
            failed_ids=failed_ids,
        ))

    async def log_import_completed(
        self,
        imported: int,
        skipped_incomplete: int,
        rejected_invalid: int,
    ) -> None:
        await self.log(AuditEventBuilder.import_completed(
            imported=imported,
            skipped_incomplete=skipped_incomplete,
            rejected_invalid=rejected_invalid,
        ))

    async def log_export_completed(self, exported: int) -> None:
        await self.log(AuditEventBuilder.export_completed(exported))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
        ))
