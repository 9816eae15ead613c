"""Read-only aggregation package."""

from expense_tracker.queries.aggregation import (
    build_insight_inputs,
    compute_category_breakdown,
    compute_dashboard_stats,
    compute_tax_summary,
)

__all__ = [
    "build_insight_inputs",
    "compute_category_breakdown",
    "compute_dashboard_stats",
    "compute_tax_summary",
]
