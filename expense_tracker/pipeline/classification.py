"""
Classification Pipeline

Enriches a persisted expense with an AI-suggested category and
deductibility.

FLOW:
1. classify_category(description, vendor, amount)
2. classify_deductibility(description, vendor, amount, category)
3. Apply both suggestions to the stored expense in ONE update

CRITICAL BOUNDARIES:
- The store is touched only before and after the classifier calls,
  never held across them
- Only fields that are still empty are written. A category the user
  chose is never overwritten by a suggestion
- Date, vendor, amount and description are never modified
- If either call fails, nothing is written and enrich() hands back
  the expense unchanged - creating an expense must never fail because
  the classifier did
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

import structlog

from expense_tracker.agents import (
    ClassifierError,
    ExpenseClassifier,
)
from expense_tracker.audit import AuditLogger
from expense_tracker.models.expense import Expense, ExpenseUpdate
from expense_tracker.services.storage import ExpenseStorageInterface


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ClassificationPipeline:
    """
    Orchestrates the classifier calls for a single expense.

    Two entry points:
    - enrich(): best-effort, never raises ClassifierError (used on create)
    - classify(): raises ClassifierError (used by bulk runs that count
      failures themselves)
    """

    def __init__(
        self,
        classifier: ExpenseClassifier,
        storage: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self._classifier = classifier
        self._storage = storage
        self._audit_logger = audit_logger
        self._timeout = timeout_seconds

    @property
    def classifier(self) -> ExpenseClassifier:
        return self._classifier

    @classifier.setter
    def classifier(self, classifier: ExpenseClassifier) -> None:
        self._classifier = classifier

    async def _ask(self, call: Awaitable[T]) -> T:
        """Run one classifier call; every failure becomes ClassifierError."""
        try:
            if self._timeout:
                return await asyncio.wait_for(call, self._timeout)
            return await call
        except ClassifierError:
            raise
        except asyncio.TimeoutError:
            raise ClassifierError(f"Classifier timed out after {self._timeout}s")
        except Exception as e:
            raise ClassifierError(f"Classifier call failed: {e}") from e

    async def classify(self, expense: Expense) -> Optional[Expense]:
        """
        Fill in whichever of category / deductibility is missing.

        If the expense already has a category, step 1 is skipped and the
        existing category is used for the deductibility call.

        Returns:
            The updated expense, or None if nothing was written (nothing
            was missing, or the expense was deleted or filled in while
            the classifier ran)

        Raises:
            ClassifierError: If either classifier call fails
        """
        if not expense.needs_classification:
            return None

        category = expense.category
        category_confidence = None
        patch = {}

        if category is None:
            suggestion = await self._ask(self._classifier.classify_category(
                expense.description,
                expense.vendor,
                expense.amount,
            ))
            category = suggestion.category
            category_confidence = suggestion.confidence
            patch["category"] = category

        deductibility = await self._ask(self._classifier.classify_deductibility(
            expense.description,
            expense.vendor,
            expense.amount,
            category,
        ))
        if expense.deductibility is None:
            patch["deductibility"] = deductibility.deductibility

        # The record may have been edited or deleted while we waited
        current = await self._storage.get_expense(expense.id)
        if current is None:
            logger.info("classification_target_deleted", expense_id=expense.id)
            return None

        patch = {
            field: value
            for field, value in patch.items()
            if getattr(current, field) is None
        }
        if not patch:
            return None

        updated = await self._storage.update_expense(expense.id, ExpenseUpdate(**patch))
        if updated is None:
            return None

        if self._audit_logger:
            await self._audit_logger.log_expense_classified(
                expense=updated,
                category_confidence=category_confidence,
                deductibility_confidence=deductibility.confidence,
                reasoning=deductibility.reasoning,
            )
        return updated

    async def enrich(self, expense: Expense) -> Expense:
        """
        Best-effort classification of a freshly created expense.

        Skipped entirely when the expense already has a category.
        On any classifier failure the failure is logged and the
        expense is returned unmodified.
        """
        if expense.category is not None:
            return expense

        try:
            updated = await self.classify(expense)
        except ClassifierError as e:
            logger.warning(
                "classification_failed",
                expense_id=expense.id,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_classification_failed(expense.id, str(e))
            return expense

        if updated is None:
            return await self._storage.get_expense(expense.id) or expense
        return updated
