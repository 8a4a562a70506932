"""AI Agents package."""

from fintrack.agents.advisor import (
    ADVICE_EMPTY,
    ADVICE_ERROR,
    ADVICE_UNAVAILABLE,
    AdviceRequester,
    FinancialSummary,
    TransactionSummary,
    build_prompt,
    build_summary,
    can_request_advice,
)

__all__ = [
    "ADVICE_EMPTY",
    "ADVICE_ERROR",
    "ADVICE_UNAVAILABLE",
    "AdviceRequester",
    "FinancialSummary",
    "TransactionSummary",
    "build_prompt",
    "build_summary",
    "can_request_advice",
]
