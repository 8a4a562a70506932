"""
AI Advice Requester for FinTrack

Turns a small summary of the user's finances into a short piece of
natural-language advice from Gemini.

BOUNDARIES:
- CAN: Comment on the recent transactions and the total balance it is shown
- CANNOT: Write anything back; the response is displayed and forgotten
- NEVER raises: a missing key or a failed call becomes a fixed message

The summary is deliberately bounded: the total balance plus the most
recent transactions (10 by default), newest first.
"""

import json
from decimal import Decimal
from typing import Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel

from fintrack.config import GeminiSettings, get_settings
from fintrack.models.ledger import (
    DEFAULT_CATEGORIES,
    BankAccount,
    Category,
    Transaction,
)


logger = structlog.get_logger(__name__)

ADVICE_UNAVAILABLE = (
    "AI advice is currently unavailable. "
    "Please make sure the Gemini API key is configured."
)
ADVICE_ERROR = "Something went wrong while fetching AI advice. Please try again later."
ADVICE_EMPTY = "The AI did not come up with specific advice. Please try again later."

UNKNOWN_CATEGORY = "Unknown"


class TransactionSummary(BaseModel):
    """One transaction as shown to the model."""

    type: str
    amount: float
    category: str
    note: str
    date: str


class FinancialSummary(BaseModel):
    """Everything the model gets to see."""

    total_balance: float
    recent_transactions: list[TransactionSummary]


def can_request_advice(transactions: list[Transaction]) -> bool:
    """Advice needs at least one transaction to talk about."""
    return len(transactions) > 0


def build_summary(
    transactions: list[Transaction],
    accounts: list[BankAccount],
    categories: list[Category],
    limit: int = 10,
) -> FinancialSummary:
    """
    Summarise the finances for the prompt.

    `transactions` is expected newest first, as the mirror keeps them.
    """
    names = {category.id: category.name for category in categories}
    total = sum((account.balance for account in accounts), Decimal("0"))
    return FinancialSummary(
        total_balance=float(total),
        recent_transactions=[
            TransactionSummary(
                type=t.type.value,
                amount=float(t.amount),
                category=names.get(t.category_id, UNKNOWN_CATEGORY),
                note=t.note,
                date=t.date.isoformat(),
            )
            for t in transactions[:limit]
        ],
    )


def build_prompt(summary: FinancialSummary, language: str = "English") -> str:
    recent = json.dumps(
        [t.model_dump() for t in summary.recent_transactions],
        indent=2,
        ensure_ascii=False,
    )
    return f"""You are a professional personal finance advisor.
Analyse the user's financial situation below and give 3 specific suggestions.

Total balance across all accounts: ${summary.total_balance:,.2f}

The {len(summary.recent_transactions)} most recent transactions:
{recent}

Reply in {language}, in a professional and friendly tone.
Include observations about the spending and suggestions for the future."""


class AdviceRequester:
    """
    Requests financial advice from Gemini.

    One request per call: no retry, no streaming, no caching.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        recent_limit: Optional[int] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._recent_limit = recent_limit or get_settings().app.recent_transactions_for_advice
        self._model = None

    @property
    def is_available(self) -> bool:
        return self._settings.is_configured

    def _get_model(self):
        """Configure Google Generative AI on first use."""
        if self._model is None:
            genai.configure(api_key=self._settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=self._settings.model_name,
                generation_config={
                    "temperature": self._settings.temperature,
                    "max_output_tokens": self._settings.max_tokens,
                }
            )
        return self._model

    async def get_financial_advice(
        self,
        transactions: list[Transaction],
        accounts: list[BankAccount],
        categories: list[Category] = DEFAULT_CATEGORIES,
    ) -> str:
        """
        Ask for advice about the given finances.

        Returns the model's text verbatim, or one of ADVICE_UNAVAILABLE,
        ADVICE_EMPTY, ADVICE_ERROR.
        """
        if not self.is_available:
            return ADVICE_UNAVAILABLE

        summary = build_summary(transactions, accounts, categories, self._recent_limit)
        prompt = build_prompt(summary, self._settings.reply_language)

        try:
            response = await self._get_model().generate_content_async(prompt)
            text = (response.text or "").strip()
        except Exception as e:
            logger.error("advice.request_failed", error=str(e), model=self._settings.model_name)
            return ADVICE_ERROR

        logger.info(
            "advice.received",
            model=self._settings.model_name,
            transactions=len(summary.recent_transactions),
            empty=not text,
        )
        return text or ADVICE_EMPTY
