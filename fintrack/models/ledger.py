"""
Core Data Models for FinTrack

These models define the schemas for the records mirrored from the
document store:
1. BankAccount - a named balance owned by one user
2. Transaction - an income or expense posted against one account
3. Category - a fixed, non-editable label for transactions
4. UserProfile - the signed-in identity

DESIGN DECISION: Records are flat. The store holds plain documents with
camelCase keys (userId, bankName, ...); these models convert to and from
that shape with `to_document()` / `from_document()`. Amounts are Decimal
end to end so that balance arithmetic is exact.
"""

import time
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction relative to its account."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# CATEGORIES - static, not persisted per user
# =============================================================================

class Category(BaseModel):
    """A transaction category with its display icon and colour."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    icon: str
    color: str


DEFAULT_CATEGORIES: list[Category] = [
    Category(id="cat-1", name="Dining", icon="Utensils", color="#ef4444"),
    Category(id="cat-2", name="Transport", icon="Bus", color="#3b82f6"),
    Category(id="cat-3", name="Salary", icon="Wallet", color="#10b981"),
    Category(id="cat-4", name="Shopping & Fun", icon="ShoppingBag", color="#f59e0b"),
    Category(id="cat-5", name="Housing & Fees", icon="Home", color="#8b5cf6"),
    Category(id="cat-6", name="Other", icon="MoreHorizontal", color="#64748b"),
]

FALLBACK_CATEGORY = DEFAULT_CATEGORIES[-1]


def find_category(category_id: Optional[str]) -> Optional[Category]:
    """Look up a default category by id."""
    for category in DEFAULT_CATEGORIES:
        if category.id == category_id:
            return category
    return None


# =============================================================================
# STORED RECORDS
# =============================================================================

class _Document(BaseModel):
    """Shared conversion between models and store documents."""
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_document(self) -> dict[str, Any]:
        """Serialise to a store document (the id is the document key)."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]):
        """Build a record from a store document and its key."""
        return cls.model_validate({**data, "id": doc_id})


class BankAccount(_Document):
    """
    A bank account or wallet.

    `balance` is a stored running total. It is changed by the ledger
    when transactions are posted or removed, or by a direct edit.
    `version` increases on every balance write and guards against
    two sessions overwriting each other's balance.
    """

    id: str
    owner_id: str = Field(..., alias="userId")
    name: str = Field(..., min_length=1, max_length=100)
    bank_name: str = Field(default="", alias="bankName", max_length=100)
    balance: Decimal = Field(default=Decimal("0"))
    color: str = Field(default="#6366f1")
    created_at: int = Field(default_factory=now_millis, alias="createdAt")
    version: int = Field(default=0, ge=0)


class Transaction(_Document):
    """
    An income or expense record.

    Transactions are never edited in place; they are created and deleted.
    """

    id: str
    owner_id: str = Field(..., alias="userId")
    account_id: str = Field(..., alias="accountId")
    amount: Decimal = Field(..., gt=0)
    type: TransactionType
    category_id: str = Field(default="", alias="categoryId")
    note: str = Field(default="", max_length=500)
    date: date
    created_at: int = Field(default_factory=now_millis, alias="createdAt")

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this transaction on its account's balance."""
        if self.type == TransactionType.INCOME:
            return self.amount
        return -self.amount

    @property
    def category(self) -> Category:
        return find_category(self.category_id) or FALLBACK_CATEGORY


class UserProfile(BaseModel):
    """The currently signed-in identity."""

    uid: str
    email: str
    display_name: Optional[str] = None
    id_token: Optional[str] = Field(default=None, repr=False)
