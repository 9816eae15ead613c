"""
Expense Aggregation

DESIGN DECISION: Aggregation is DETERMINISTIC and read-only.
Every function here is a pure function of the expense list it is
given - no store access, no classifier calls. The AI summary
(generate_insights) only comments on the numbers; the numbers on
the dashboard always come from here.

All sums are Decimal and rendered with exactly two places.
Unclassified expenses count towards totals but towards no category
or deductibility bucket.
"""

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from expense_tracker.agents import InsightInput
from expense_tracker.models.expense import (
    CategoryTotal,
    DashboardStats,
    Deductibility,
    DeductibilityBucket,
    Expense,
    ExpenseCategory,
    TaxSummary,
    format_money,
)


ZERO = Decimal("0")


def _percent(part: Decimal, whole: Decimal) -> int:
    """Whole-number percentage, halves rounded up. 0 when whole is 0."""
    if not whole:
        return 0
    return int((part * 100 / whole).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _sum_amounts(expenses: Iterable[Expense]) -> Decimal:
    return sum((e.amount for e in expenses), ZERO)


def compute_dashboard_stats(expenses: list[Expense]) -> DashboardStats:
    """
    Headline numbers.

    ai_accuracy is the share of expenses that have a category.
    """
    total = _sum_amounts(expenses)
    deductible = _sum_amounts(
        e for e in expenses if e.deductibility == Deductibility.FULLY_DEDUCTIBLE
    )
    categorized_count = sum(1 for e in expenses if e.category is not None)
    accuracy = _percent(Decimal(categorized_count), Decimal(len(expenses)))

    return DashboardStats(
        total_expenses=format_money(total),
        deductible_amount=format_money(deductible),
        categorized_count=categorized_count,
        ai_accuracy=f"{accuracy}%",
    )


def compute_tax_summary(expenses: list[Expense]) -> TaxSummary:
    """One bucket per deductibility value, each computed independently."""
    buckets = []
    for deductibility in Deductibility:
        matching = [e for e in expenses if e.deductibility == deductibility]
        buckets.append(DeductibilityBucket(
            deductibility=deductibility,
            amount=format_money(_sum_amounts(matching)),
            count=len(matching),
        ))
    return TaxSummary(buckets=buckets)


def compute_category_breakdown(expenses: list[Expense]) -> list[CategoryTotal]:
    """
    Spending per category, largest first.

    Percentages are of the categorized total, so they ignore
    expenses still pending classification.
    """
    amounts: dict[ExpenseCategory, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[ExpenseCategory, int] = defaultdict(int)
    for expense in expenses:
        if expense.category is None:
            continue
        amounts[expense.category] += expense.amount
        counts[expense.category] += 1

    categorized_total = sum(amounts.values(), ZERO)
    # Enum order breaks ties so the output is stable
    order = {category: index for index, category in enumerate(ExpenseCategory)}
    ranked = sorted(amounts, key=lambda c: (-amounts[c], order[c]))

    return [
        CategoryTotal(
            category=category,
            amount=format_money(amounts[category]),
            count=counts[category],
            percentage=_percent(amounts[category], categorized_total),
        )
        for category in ranked
    ]


def build_insight_inputs(expenses: list[Expense]) -> list[InsightInput]:
    """Rows handed to the classifier's summarize()."""
    return [
        InsightInput(
            category=e.category.value if e.category else "Uncategorized",
            deductibility=e.deductibility.value if e.deductibility else "Unknown",
            amount=format_money(e.amount),
            description=e.description,
        )
        for e in expenses
    ]
