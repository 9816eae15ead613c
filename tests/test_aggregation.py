"""
Tests for dashboard and tax aggregation.
"""

from expense_tracker.models.expense import Deductibility, ExpenseCategory
from expense_tracker.queries import (
    build_insight_inputs,
    compute_category_breakdown,
    compute_dashboard_stats,
    compute_tax_summary,
)


class TestDashboardStats:
    """Tests for compute_dashboard_stats."""

    def test_half_categorized(self, make_expense):
        expenses = [
            make_expense(
                1, "10.00",
                category=ExpenseCategory.SOFTWARE,
                deductibility=Deductibility.FULLY_DEDUCTIBLE,
            ),
            make_expense(2, "20.00"),
        ]

        stats = compute_dashboard_stats(expenses)

        assert stats.total_expenses == "30.00"
        assert stats.deductible_amount == "10.00"
        assert stats.categorized_count == 1
        assert stats.ai_accuracy == "50%"

    def test_empty(self):
        stats = compute_dashboard_stats([])
        assert stats.total_expenses == "0.00"
        assert stats.deductible_amount == "0.00"
        assert stats.categorized_count == 0
        assert stats.ai_accuracy == "0%"

    def test_no_float_drift(self, make_expense):
        expenses = [make_expense(i, "0.10") for i in range(1, 4)]
        assert compute_dashboard_stats(expenses).total_expenses == "0.30"

    def test_accuracy_rounds_half_up(self, make_expense):
        expenses = [make_expense(1, category=ExpenseCategory.MEALS)]
        expenses += [make_expense(i) for i in range(2, 9)]
        # 1 of 8 = 12.5%
        assert compute_dashboard_stats(expenses).ai_accuracy == "13%"

    def test_partially_deductible_is_not_deductible_amount(self, make_expense):
        expenses = [make_expense(1, "8.00", deductibility=Deductibility.PARTIALLY_DEDUCTIBLE)]
        assert compute_dashboard_stats(expenses).deductible_amount == "0.00"


class TestTaxSummary:
    """Tests for compute_tax_summary."""

    def test_buckets(self, make_expense):
        expenses = [
            make_expense(1, "10.00", deductibility=Deductibility.FULLY_DEDUCTIBLE),
            make_expense(2, "5.50", deductibility=Deductibility.FULLY_DEDUCTIBLE),
            make_expense(3, "4.50", deductibility=Deductibility.PARTIALLY_DEDUCTIBLE),
            make_expense(4, "99.00"),
        ]

        summary = compute_tax_summary(expenses)

        assert [b.deductibility for b in summary.buckets] == list(Deductibility)
        fully = summary.bucket(Deductibility.FULLY_DEDUCTIBLE)
        assert (fully.amount, fully.count) == ("15.50", 2)
        partially = summary.bucket(Deductibility.PARTIALLY_DEDUCTIBLE)
        assert (partially.amount, partially.count) == ("4.50", 1)
        not_deductible = summary.bucket(Deductibility.NOT_DEDUCTIBLE)
        assert (not_deductible.amount, not_deductible.count) == ("0.00", 0)


class TestCategoryBreakdown:
    """Tests for compute_category_breakdown."""

    def test_sorted_with_percentages(self, make_expense):
        expenses = [
            make_expense(1, "10.00", category=ExpenseCategory.MEALS),
            make_expense(2, "20.00", category=ExpenseCategory.SOFTWARE),
            make_expense(3, "10.00", category=ExpenseCategory.SOFTWARE),
            make_expense(4, "500.00"),
        ]

        breakdown = compute_category_breakdown(expenses)

        assert [t.category for t in breakdown] == [ExpenseCategory.SOFTWARE, ExpenseCategory.MEALS]
        assert [t.amount for t in breakdown] == ["30.00", "10.00"]
        assert [t.count for t in breakdown] == [2, 1]
        assert [t.percentage for t in breakdown] == [75, 25]

    def test_ties_follow_category_order(self, make_expense):
        expenses = [
            make_expense(1, "5.00", category=ExpenseCategory.TRAVEL),
            make_expense(2, "5.00", category=ExpenseCategory.MARKETING),
        ]
        breakdown = compute_category_breakdown(expenses)
        assert [t.category for t in breakdown] == [ExpenseCategory.MARKETING, ExpenseCategory.TRAVEL]

    def test_zero_amounts(self, make_expense):
        breakdown = compute_category_breakdown([make_expense(1, "0.00", category=ExpenseCategory.OTHER)])
        assert breakdown[0].percentage == 0


class TestInsightInputs:
    """Tests for build_insight_inputs."""

    def test_placeholders_for_unclassified(self, make_expense):
        inputs = build_insight_inputs([
            make_expense(1, "3.5", description="Coffee"),
            make_expense(
                2, "12.00",
                category=ExpenseCategory.SOFTWARE,
                deductibility=Deductibility.FULLY_DEDUCTIBLE,
            ),
        ])

        assert inputs[0].category == "Uncategorized"
        assert inputs[0].deductibility == "Unknown"
        assert inputs[0].amount == "3.50"
        assert inputs[0].description == "Coffee"
        assert inputs[1].category == "Software"
        assert inputs[1].deductibility == "Fully Deductible"
