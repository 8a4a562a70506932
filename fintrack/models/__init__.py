"""
Data Models Package

This package contains the Pydantic models mirrored from the document store.
"""

from fintrack.models.ledger import (
    DEFAULT_CATEGORIES,
    FALLBACK_CATEGORY,
    BankAccount,
    Category,
    Transaction,
    TransactionType,
    UserProfile,
    find_category,
    now_millis,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "FALLBACK_CATEGORY",
    "BankAccount",
    "Category",
    "Transaction",
    "TransactionType",
    "UserProfile",
    "find_category",
    "now_millis",
]
