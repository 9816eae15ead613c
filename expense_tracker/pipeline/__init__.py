"""Classification and reconciliation pipelines."""

from expense_tracker.pipeline.classification import ClassificationPipeline
from expense_tracker.pipeline.reconciliation import BulkReconciler

__all__ = ["BulkReconciler", "ClassificationPipeline"]
