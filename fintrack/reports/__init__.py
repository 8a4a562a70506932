"""Reports package."""

from fintrack.reports.aggregations import (
    CategorySlice,
    DailyTotals,
    MonthSummary,
    category_breakdown,
    category_lookup,
    last_7_days,
    month_summary,
    recent_transactions,
    total_balance,
)
from fintrack.reports.display import account_chip_html, money

__all__ = [
    "CategorySlice",
    "DailyTotals",
    "MonthSummary",
    "account_chip_html",
    "category_breakdown",
    "category_lookup",
    "last_7_days",
    "money",
    "month_summary",
    "recent_transactions",
    "total_balance",
]
