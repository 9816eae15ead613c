"""AI classifier package."""

from expense_tracker.agents.ai_agents import (
    CategoryShare,
    CategorySuggestion,
    ClassifierError,
    ClassifierNotConfiguredError,
    DeductibilityShare,
    DeductibilitySuggestion,
    ExpenseClassifier,
    ExpenseInsights,
    GeminiExpenseClassifier,
    InsightInput,
    extract_json_object,
    parse_category_response,
    parse_deductibility_response,
)

__all__ = [
    "CategoryShare",
    "CategorySuggestion",
    "ClassifierError",
    "ClassifierNotConfiguredError",
    "DeductibilityShare",
    "DeductibilitySuggestion",
    "ExpenseClassifier",
    "ExpenseInsights",
    "GeminiExpenseClassifier",
    "InsightInput",
    "extract_json_object",
    "parse_category_response",
    "parse_deductibility_response",
]
