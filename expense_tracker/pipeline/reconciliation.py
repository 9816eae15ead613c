"""
Bulk Reconciliation

Batch operations between the store, the classifier and the external
record source:

- classify_all: re-run classification for every expense that is
  missing a category or a deductibility
- import_rows / import_from_source: create expenses from spreadsheet rows
- export_to_source: overwrite the spreadsheet with the current expenses

DESIGN DECISION: These are user-invoked actions, so failures are
aggregated into a result ("updated 3 of 5") rather than aborting on
the first one. One bad expense or row never stops the rest.
"""

from typing import Any, Iterable, Mapping, Optional

import structlog

from expense_tracker.agents import ClassifierError
from expense_tracker.audit import AuditLogger
from expense_tracker.models.expense import (
    BulkClassifyResult,
    ExportResult,
    ImportResult,
)
from expense_tracker.pipeline.classification import ClassificationPipeline
from expense_tracker.services.storage import (
    ExpenseStorageInterface,
    RecordSourceError,
    RecordSourceInterface,
)
from expense_tracker.validation import (
    ExpenseValidationError,
    ExpenseValidator,
    has_required_fields,
)


logger = structlog.get_logger(__name__)


class BulkReconciler:
    """
    Runs the batch operations.

    Imported rows are NOT passed through the classifier - they may
    already carry a category and deductibility from an earlier export.
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        pipeline: ClassificationPipeline,
        record_source: Optional[RecordSourceInterface] = None,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._pipeline = pipeline
        self._record_source = record_source
        self._validator = validator or ExpenseValidator()
        self._audit_logger = audit_logger

    @property
    def record_source(self) -> Optional[RecordSourceInterface]:
        return self._record_source

    @record_source.setter
    def record_source(self, source: Optional[RecordSourceInterface]) -> None:
        self._record_source = source

    async def classify_all(self) -> BulkClassifyResult:
        """
        Classify every expense missing a category or deductibility.

        Expenses are processed one at a time. A failure is recorded
        against that expense and the run moves on.
        """
        expenses = await self._storage.list_expenses()
        candidates = [e for e in expenses if e.needs_classification]

        updated = 0
        failed_ids = []
        for expense in candidates:
            try:
                result = await self._pipeline.classify(expense)
            except ClassifierError as e:
                logger.warning(
                    "bulk_classification_item_failed",
                    expense_id=expense.id,
                    error=str(e),
                )
                failed_ids.append(expense.id)
                if self._audit_logger:
                    await self._audit_logger.log_classification_failed(expense.id, str(e))
                continue

            if result is not None:
                updated += 1

        if self._audit_logger:
            await self._audit_logger.log_bulk_classification(
                candidates=len(candidates),
                updated=updated,
                failed_ids=failed_ids,
            )

        return BulkClassifyResult(
            candidates=len(candidates),
            updated=updated,
            failed_ids=failed_ids,
        )

    async def import_rows(self, rows: Iterable[Mapping[str, Any]]) -> ImportResult:
        """
        Create expenses from externally-sourced rows.

        - Rows missing date, vendor or amount are dropped silently
        - Rows with all three present but invalid values (e.g. an empty
          vendor) are rejected and counted
        - The rest go through the store's bulk create
        """
        rows = list(rows)
        complete = [row for row in rows if has_required_fields(row)]
        skipped = len(rows) - len(complete)

        valid = []
        rejected = 0
        for row in complete:
            try:
                valid.append(self._validator.validate_create(row))
            except ExpenseValidationError as e:
                rejected += 1
                logger.info(
                    "import_row_rejected",
                    issues=[issue.model_dump() for issue in e.issues],
                )

        created = await self._storage.bulk_create_expenses(valid)

        if self._audit_logger:
            await self._audit_logger.log_import_completed(
                imported=len(created),
                skipped_incomplete=skipped,
                rejected_invalid=rejected,
            )

        return ImportResult(
            imported=len(created),
            skipped_incomplete=skipped,
            rejected_invalid=rejected,
        )

    async def import_from_source(self) -> ImportResult:
        """
        Read all rows from the record source and import them.

        A source failure is this operation's own failure, so it is
        reported in the result instead of being swallowed.
        """
        if self._record_source is None:
            return ImportResult(success=False, error_message="No record source configured")

        try:
            rows = await self._record_source.read_all()
        except RecordSourceError as e:
            await self._report_source_error(str(e))
            return ImportResult(success=False, error_message=str(e))

        return await self.import_rows(rows)

    async def export_to_source(self) -> ExportResult:
        """Overwrite the record source with the current expense list."""
        if self._record_source is None:
            return ExportResult(success=False, error_message="No record source configured")

        expenses = await self._storage.list_expenses()
        try:
            await self._record_source.write_all(expenses)
        except RecordSourceError as e:
            await self._report_source_error(str(e))
            return ExportResult(success=False, error_message=str(e))

        if self._audit_logger:
            await self._audit_logger.log_export_completed(len(expenses))

        return ExportResult(exported=len(expenses))

    async def _report_source_error(self, message: str) -> None:
        logger.error("record_source_failed", error=message)
        if self._audit_logger:
            await self._audit_logger.log_external_service_error(
                service="record_source",
                error_message=message,
            )
