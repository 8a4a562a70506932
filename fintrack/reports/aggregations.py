"""
Report Aggregations

DESIGN DECISION: Every figure on the dashboard and report pages is
DERIVED from the mirrored accounts and transactions on each render.
Nothing computed here is stored anywhere.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from fintrack.models.ledger import (
    DEFAULT_CATEGORIES,
    FALLBACK_CATEGORY,
    BankAccount,
    Category,
    Transaction,
    TransactionType,
    find_category,
)


ZERO = Decimal("0")


class MonthSummary(BaseModel):
    """Income and expense totals for one calendar month."""

    month: str  # YYYY-MM
    income: Decimal = ZERO
    expense: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


class CategorySlice(BaseModel):
    """One slice of the expense-by-category chart."""

    category_id: str
    name: str
    color: str
    value: Decimal
    share: float  # 0-1 of all expenses


class DailyTotals(BaseModel):
    """One bar pair of the last-7-days chart."""

    date: date
    label: str  # MM-DD
    income: Decimal = ZERO
    expense: Decimal = ZERO


def _sum(transactions: list[Transaction], type: TransactionType) -> Decimal:
    return sum((t.amount for t in transactions if t.type == type), ZERO)


def category_lookup(category_id: Optional[str]) -> Category:
    """Display category for an id; unknown ids show as "Other"."""
    return find_category(category_id) or FALLBACK_CATEGORY


def total_balance(accounts: list[BankAccount]) -> Decimal:
    """Exact sum of all account balances."""
    return sum((account.balance for account in accounts), ZERO)


def month_summary(
    transactions: list[Transaction],
    today: Optional[date] = None,
) -> MonthSummary:
    """Totals for the month containing `today`."""
    today = today or date.today()
    in_month = [
        t for t in transactions
        if t.date.year == today.year and t.date.month == today.month
    ]
    return MonthSummary(
        month=today.strftime("%Y-%m"),
        income=_sum(in_month, TransactionType.INCOME),
        expense=_sum(in_month, TransactionType.EXPENSE),
    )


def recent_transactions(transactions: list[Transaction], limit: int = 5) -> list[Transaction]:
    """The newest transactions, assuming newest-first input."""
    return transactions[:limit]


def category_breakdown(
    transactions: list[Transaction],
    categories: list[Category] = DEFAULT_CATEGORIES,
) -> list[CategorySlice]:
    """
    Expense totals per category.

    Categories without expenses are dropped. Income never counts.
    """
    totals = []
    for category in categories:
        value = sum(
            (
                t.amount for t in transactions
                if t.category_id == category.id and t.type == TransactionType.EXPENSE
            ),
            ZERO,
        )
        if value > 0:
            totals.append((category, value))

    grand_total = sum((value for _, value in totals), ZERO)
    return [
        CategorySlice(
            category_id=category.id,
            name=category.name,
            color=category.color,
            value=value,
            share=float(value / grand_total),
        )
        for category, value in totals
    ]


def last_7_days(
    transactions: list[Transaction],
    today: Optional[date] = None,
) -> list[DailyTotals]:
    """Daily income and expense for the last seven days, oldest first."""
    today = today or date.today()
    days = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        on_day = [t for t in transactions if t.date == day]
        days.append(DailyTotals(
            date=day,
            label=day.strftime("%m-%d"),
            income=_sum(on_day, TransactionType.INCOME),
            expense=_sum(on_day, TransactionType.EXPENSE),
        ))
    return days
