"""
AI Classifier for Expense Tracker

DESIGN DECISION: The classifier is an external capability behind a
narrow typed interface (ExpenseClassifier). The pipeline only ever sees
CategorySuggestion / DeductibilitySuggestion / ExpenseInsights, never
raw model output, and tests inject fakes.

CRITICAL BOUNDARIES:
- The classifier SUGGESTS, it never writes to the store
- Any failure (network, timeout, not configured, malformed JSON) is
  raised as ClassifierError - callers decide whether to swallow it
- Confidence scores are clamped into [0, 1]; the model is not trusted
  to stay in range
"""

import json
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.config import GeminiSettings
from expense_tracker.models.expense import (
    Deductibility,
    ExpenseCategory,
    format_money,
)


logger = structlog.get_logger(__name__)

DEFAULT_CONFIDENCE = 0.5


class ClassifierError(Exception):
    """The classifier could not produce a usable answer."""
    pass


class ClassifierNotConfiguredError(ClassifierError):
    """No API key configured for the classifier."""
    pass


def _clamp_confidence(v: Any) -> float:
    if v is None:
        return DEFAULT_CONFIDENCE
    try:
        value = float(v)
    except (TypeError, ValueError):
        raise ValueError(f"Confidence is not a number: {v!r}")
    if value != value:  # NaN
        raise ValueError("Confidence is NaN")
    return max(0.0, min(1.0, value))


class CategorySuggestion(BaseModel):
    """AI's suggestion for an expense category."""

    category: ExpenseCategory
    confidence: float = Field(ge=0.0, le=1.0)

    @field_validator('confidence', mode='before')
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        return _clamp_confidence(v)


class DeductibilitySuggestion(BaseModel):
    """AI's suggestion for the tax treatment of an expense."""

    deductibility: Deductibility
    reasoning: str = ""
    confidence: float = Field(ge=0.0, le=1.0)

    @field_validator('confidence', mode='before')
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        return _clamp_confidence(v)


def _stringify(v: Any) -> str:
    return v if isinstance(v, str) else str(v)


class CategoryShare(BaseModel):
    category: str
    percentage: float = 0
    amount: str = "0.00"

    @field_validator('amount', mode='before')
    @classmethod
    def stringify_amount(cls, v: Any) -> str:
        return _stringify(v)


class DeductibilityShare(BaseModel):
    type: str
    amount: str = "0.00"
    count: int = 0

    @field_validator('amount', mode='before')
    @classmethod
    def stringify_amount(cls, v: Any) -> str:
        return _stringify(v)


class ExpenseInsights(BaseModel):
    """
    AI-generated summary of spending.

    Produced FROM the expense rows it was given - it is commentary,
    not a source of numbers for the dashboard.
    """

    summary: str = "Unable to generate insights"
    top_categories: list[CategoryShare] = Field(default_factory=list, alias="topCategories")
    deductibility_breakdown: list[DeductibilityShare] = Field(
        default_factory=list,
        alias="deductibilityBreakdown",
    )
    recommendations: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class InsightInput(BaseModel):
    """One expense as handed to summarize()."""

    category: str
    deductibility: str
    amount: str
    description: str


class ExpenseClassifier(ABC):
    """
    Abstract interface for the external expense classifier.

    Every method may raise ClassifierError.
    """

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """False if calls are guaranteed to fail for lack of credentials."""
        pass

    @abstractmethod
    async def classify_category(
        self,
        description: str,
        vendor: str,
        amount: Decimal,
    ) -> CategorySuggestion:
        pass

    @abstractmethod
    async def classify_deductibility(
        self,
        description: str,
        vendor: str,
        amount: Decimal,
        category: ExpenseCategory,
    ) -> DeductibilitySuggestion:
        pass

    @abstractmethod
    async def summarize(self, expenses: list[InsightInput]) -> ExpenseInsights:
        pass


def extract_json_object(text: str) -> dict:
    """
    Pull the first {...} block out of a model response.

    Models like to wrap JSON in prose or code fences.
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ClassifierError("No JSON object in classifier response")
    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise ClassifierError(f"Malformed JSON in classifier response: {e}")
    if not isinstance(data, dict):
        raise ClassifierError("Classifier response is not a JSON object")
    return data


def parse_category_response(data: dict) -> CategorySuggestion:
    """
    Missing or unrecognized category falls back to Other - the
    conservative choice for bookkeeping.
    """
    label = data.get("category")
    category = ExpenseCategory.parse(label) if isinstance(label, str) else None
    try:
        return CategorySuggestion(
            category=category or ExpenseCategory.OTHER,
            confidence=data.get("confidence"),
        )
    except ValidationError as e:
        raise ClassifierError(f"Malformed category response: {e}")


def parse_deductibility_response(data: dict) -> DeductibilitySuggestion:
    """
    Missing deductibility defaults to Not Deductible. An unrecognized
    label is malformed - guessing a tax treatment is worse than none.
    """
    label = data.get("deductibility")
    if label is None:
        deductibility = Deductibility.NOT_DEDUCTIBLE
    else:
        deductibility = Deductibility.parse(label) if isinstance(label, str) else None
        if deductibility is None:
            raise ClassifierError(f"Unknown deductibility in response: {label!r}")
    try:
        return DeductibilitySuggestion(
            deductibility=deductibility,
            reasoning=data.get("reasoning") or "Unable to determine deductibility",
            confidence=data.get("confidence"),
        )
    except ValidationError as e:
        raise ClassifierError(f"Malformed deductibility response: {e}")


class GeminiExpenseClassifier(ExpenseClassifier):
    """
    Expense classifier backed by Google Gemini.

    RESPONSIBILITIES:
    - Suggest a tax bookkeeping category
    - Suggest deductibility, with a short reasoning
    - Summarize spending patterns

    The model is configured lazily, so a classifier without an API key
    can be constructed and simply reports is_configured = False.
    """

    def __init__(self, settings: GeminiSettings):
        self._settings = settings
        self._model: Optional[genai.GenerativeModel] = None

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    def _get_model(self) -> genai.GenerativeModel:
        """Configure Google Generative AI on first use."""
        if not self._settings.is_configured:
            raise ClassifierNotConfiguredError(
                "Gemini API key not configured. Please configure it in the settings."
            )
        if self._model is None:
            genai.configure(api_key=self._settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=self._settings.model_name,
                generation_config={
                    "temperature": self._settings.temperature,
                    "max_output_tokens": self._settings.max_tokens,
                    "response_mime_type": "application/json",
                },
            )
        return self._model

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_not_exception_type(ClassifierNotConfiguredError),
        reraise=True,
    )
    async def _generate_json(self, prompt: str) -> dict:
        model = self._get_model()
        try:
            response = await model.generate_content_async(prompt)
            text = response.text.strip()
        except Exception as e:
            raise ClassifierError(f"Gemini request failed: {e}")
        return extract_json_object(text)

    async def classify_category(
        self,
        description: str,
        vendor: str,
        amount: Decimal,
    ) -> CategorySuggestion:
        categories = ", ".join(c.value for c in ExpenseCategory)
        prompt = f"""You are a business expense classification assistant. Based on the following expense details, suggest the most accurate category for tax bookkeeping purposes.

Vendor: {vendor}
Description: {description}
Amount: ${format_money(amount)}

Available categories: {categories}

Respond with ONLY a JSON object in this exact format:
{{"category": "category_name", "confidence": 0.8}}

The confidence score should be between 0 and 1, where 1 is completely certain."""

        data = await self._generate_json(prompt)
        return parse_category_response(data)

    async def classify_deductibility(
        self,
        description: str,
        vendor: str,
        amount: Decimal,
        category: ExpenseCategory,
    ) -> DeductibilitySuggestion:
        options = ", ".join(f'"{d.value}"' for d in Deductibility)
        prompt = f"""Classify this business expense based on its tax deductibility for a small business.

Vendor: {vendor}
Description: {description}
Amount: ${format_money(amount)}
Category: {category.value}

Available deductibility types: {options}

Respond with ONLY a JSON object in this exact format:
{{"deductibility": "deductibility_type", "reasoning": "brief explanation", "confidence": 0.8}}

The confidence score should be between 0 and 1."""

        data = await self._generate_json(prompt)
        return parse_deductibility_response(data)

    async def summarize(self, expenses: list[InsightInput]) -> ExpenseInsights:
        expense_lines = "\n".join(
            f"Category: {e.category}, Amount: ${e.amount}, "
            f"Deductibility: {e.deductibility}, Description: {e.description}"
            for e in expenses
        ) or "No expenses recorded"

        prompt = f"""Based on the following business expenses, generate insights that help the business owner understand their spending patterns and tax deduction opportunities.

Expenses:
{expense_lines}

Respond with ONLY a JSON object in this exact format:
{{
  "summary": "one paragraph summary",
  "topCategories": [{{"category": "category_name", "percentage": 40, "amount": "total_amount"}}],
  "deductibilityBreakdown": [{{"type": "deductibility_type", "amount": "total_amount", "count": 3}}],
  "recommendations": ["recommendation1", "recommendation2", "recommendation3"]
}}

Use ONLY the expenses above. Do not invent amounts."""

        data = await self._generate_json(prompt)
        try:
            return ExpenseInsights.model_validate(data)
        except ValidationError as e:
            raise ClassifierError(f"Malformed insights response: {e}")
