"""
Main Orchestrator for Expense Tracker

This module ties together all the components and exposes the
operations the request-handling layer calls:
1. Expense CRUD (validate → store → enrich)
2. Bulk actions (classify all, import, export)
3. Read-only views (dashboard stats, tax summary, insights)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing invalid reaches the store
- Unknown ids raise NotFoundError, distinct from validation errors
- A classifier failure never fails expense creation
- Plain edits never re-trigger classification

Request parsing, HTTP status mapping and response rendering live
in the outer layer, not here.
"""

from typing import Any, Mapping, Optional, Union

import structlog

from expense_tracker.agents import (
    ExpenseClassifier,
    ExpenseInsights,
    GeminiExpenseClassifier,
)
from expense_tracker.audit import AuditLogger
from expense_tracker.config import (
    GeminiSettings,
    GoogleSheetsSettings,
    Settings,
    get_settings,
    validate_all_settings,
)
from expense_tracker.models.expense import (
    BulkClassifyResult,
    CategoryTotal,
    ConnectionStatus,
    DashboardStats,
    Expense,
    ExpenseCategory,
    ExpenseCreate,
    ExpenseUpdate,
    ExportResult,
    ImportResult,
    TaxSummary,
)
from expense_tracker.pipeline import BulkReconciler, ClassificationPipeline
from expense_tracker.queries import (
    build_insight_inputs,
    compute_category_breakdown,
    compute_dashboard_stats,
    compute_tax_summary,
)
from expense_tracker.services.storage import (
    ExpenseStorageInterface,
    GoogleSheetsRecordSource,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    NotFoundError,
    RecordSourceInterface,
)
from expense_tracker.validation import ExpenseValidator


logger = structlog.get_logger(__name__)


class ExpenseService:
    """
    Single entry point for expense operations.

    Flow on create:
    1. Validate the payload (reject before touching the store)
    2. Store it (id + timestamps assigned)
    3. If no category was given, ask the classifier (best-effort)
    4. Return whatever the store now holds
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        classifier: ExpenseClassifier,
        record_source: Optional[RecordSourceInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[ExpenseValidator] = None,
        categorize_on_create: bool = True,
        classifier_timeout_seconds: Optional[float] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._validator = validator or ExpenseValidator()
        self._categorize_on_create = categorize_on_create
        self._pipeline = ClassificationPipeline(
            classifier=classifier,
            storage=storage,
            audit_logger=audit_logger,
            timeout_seconds=classifier_timeout_seconds,
        )
        self._reconciler = BulkReconciler(
            storage=storage,
            pipeline=self._pipeline,
            record_source=record_source,
            validator=self._validator,
            audit_logger=audit_logger,
        )

    @property
    def classifier(self) -> ExpenseClassifier:
        return self._pipeline.classifier

    @property
    def record_source(self) -> Optional[RecordSourceInterface]:
        return self._reconciler.record_source

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    async def list_expenses(
        self,
        category: Optional[ExpenseCategory] = None,
    ) -> list[Expense]:
        """All expenses, newest first, optionally for one category."""
        return await self._storage.list_expenses(category=category)

    async def get_expense(self, expense_id: int) -> Expense:
        expense = await self._storage.get_expense(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return expense

    async def expenses_between(self, start_date: str, end_date: str) -> list[Expense]:
        """Expenses dated in [start_date, end_date] (YYYY-MM-DD, inclusive)."""
        return await self._storage.get_expenses_by_date_range(start_date, end_date)

    async def create_expense(
        self,
        payload: Union[ExpenseCreate, Mapping[str, Any]],
    ) -> Expense:
        """
        Validate, store and (if uncategorized) enrich an expense.

        Raises:
            ExpenseValidationError: If the payload is invalid
        """
        data = self._validator.validate_create(payload)
        expense = await self._storage.create_expense(data)

        if self._audit_logger:
            await self._audit_logger.log_expense_created(expense)

        if self._categorize_on_create and expense.category is None:
            expense = await self._pipeline.enrich(expense)

        return expense

    async def update_expense(
        self,
        expense_id: int,
        payload: Union[ExpenseUpdate, Mapping[str, Any]],
    ) -> Expense:
        """
        Apply a partial update. Does not re-run classification.

        Raises:
            ExpenseValidationError: If the payload is invalid
            NotFoundError: If the expense doesn't exist
        """
        patch = self._validator.validate_update(payload)
        updated = await self._storage.update_expense(expense_id, patch)
        if updated is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(
                expense_id,
                sorted(patch.to_patch()),
            )
        return updated

    async def delete_expense(self, expense_id: int) -> None:
        """
        Raises:
            NotFoundError: If the expense doesn't exist
        """
        deleted = await self._storage.delete_expense(expense_id)
        if not deleted:
            raise NotFoundError(f"Expense not found: {expense_id}")

        if self._audit_logger:
            await self._audit_logger.log_expense_deleted(expense_id)

    # -------------------------------------------------------------------------
    # Bulk actions
    # -------------------------------------------------------------------------

    async def categorize_all(self) -> BulkClassifyResult:
        return await self._reconciler.classify_all()

    async def import_rows(self, rows: list[Mapping[str, Any]]) -> ImportResult:
        return await self._reconciler.import_rows(rows)

    async def import_from_source(self) -> ImportResult:
        return await self._reconciler.import_from_source()

    async def export_to_source(self) -> ExportResult:
        return await self._reconciler.export_to_source()

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    async def dashboard_stats(self) -> DashboardStats:
        return compute_dashboard_stats(await self._storage.list_expenses())

    async def tax_summary(self) -> TaxSummary:
        return compute_tax_summary(await self._storage.list_expenses())

    async def category_breakdown(self) -> list[CategoryTotal]:
        return compute_category_breakdown(await self._storage.list_expenses())

    async def generate_insights(self) -> ExpenseInsights:
        """
        Ask the classifier to summarize spending.

        The external call is the whole point of this operation, so a
        failure propagates.

        Raises:
            ClassifierError: If the classifier fails
        """
        expenses = await self._storage.list_expenses()
        return await self.classifier.summarize(build_insight_inputs(expenses))

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    async def connection_status(self) -> ConnectionStatus:
        source = self.record_source
        return ConnectionStatus(
            classifier_configured=self.classifier.is_configured,
            record_source_connected=await source.test_connection() if source else False,
        )

    def configure_classifier(
        self,
        settings: Union[GeminiSettings, ExpenseClassifier],
    ) -> None:
        """Swap in a classifier built from runtime-provided credentials."""
        if isinstance(settings, ExpenseClassifier):
            classifier = settings
        else:
            classifier = GeminiExpenseClassifier(settings)
        self._pipeline.classifier = classifier
        logger.info("classifier_configured", configured=classifier.is_configured)

    def configure_record_source(
        self,
        settings: Union[GoogleSheetsSettings, RecordSourceInterface],
    ) -> None:
        """Swap in a record source built from runtime-provided credentials."""
        if isinstance(settings, RecordSourceInterface):
            source = settings
        else:
            source = GoogleSheetsRecordSource.from_settings(settings)
        self._reconciler.record_source = source
        logger.info("record_source_configured")


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[ExpenseService, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from. Defaults to get_settings().

    Returns:
        (expense_service, audit_logger)

    Missing Gemini or Google Sheets credentials are fine - those
    collaborators start out unconfigured and can be configured later.
    """
    settings = settings or get_settings()
    app_settings = settings.app
    logger.info("startup_configuration", **validate_all_settings(settings))

    audit_logger = AuditLogger(
        InMemoryAuditStorage(max_events=app_settings.audit_history_size)
    )

    service = ExpenseService(
        storage=InMemoryExpenseStorage(),
        classifier=GeminiExpenseClassifier(settings.gemini),
        record_source=GoogleSheetsRecordSource.from_settings(settings.google_sheets),
        audit_logger=audit_logger,
        categorize_on_create=app_settings.categorize_on_create,
        classifier_timeout_seconds=app_settings.classifier_timeout_seconds,
    )

    return service, audit_logger
