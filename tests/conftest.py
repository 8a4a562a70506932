"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio

from fintrack.config import get_settings
from fintrack.ledger import LedgerMutator
from fintrack.mirror import LiveCollectionMirror
from fintrack.models import BankAccount, Transaction, TransactionType
from fintrack.services.storage import ACCOUNTS, TRANSACTIONS, InMemoryDocumentStore


OWNER = "user-1"


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """No test sees real credentials or a developer's .env file."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "FINTRACK_BACKEND_CONFIG",
        "GEMINI_API_KEY",
        "LOG_LEVEL",
        "LOG_FORMAT",
        "DEBUG_MODE",
        "APP_ENVIRONMENT",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_account(account_id="a1", balance="1000", owner=OWNER, version=0, **kwargs):
    return BankAccount(
        id=account_id,
        owner_id=owner,
        name=kwargs.pop("name", f"Account {account_id}"),
        bank_name=kwargs.pop("bank_name", "Test Bank"),
        balance=Decimal(balance),
        version=version,
        **kwargs,
    )


def make_transaction(
    txn_id="t1",
    account_id="a1",
    amount="100",
    type=TransactionType.EXPENSE,
    category_id="cat-1",
    owner=OWNER,
    txn_date=None,
    created_at=1_000,
    note="",
):
    return Transaction(
        id=txn_id,
        owner_id=owner,
        account_id=account_id,
        amount=Decimal(amount),
        type=type,
        category_id=category_id,
        note=note,
        date=txn_date or date(2024, 6, 15),
        created_at=created_at,
    )


@pytest.fixture
def store():
    """In-memory store holding one account with a balance of 1000."""
    store = InMemoryDocumentStore()
    account = make_account()
    store.seed(ACCOUNTS, account.id, account.to_document())
    return store


@pytest_asyncio.fixture
async def mirror(store):
    mirror = LiveCollectionMirror(store, OWNER)
    await mirror.start()
    yield mirror
    mirror.close()


@pytest.fixture
def ledger(store, mirror):
    return LedgerMutator(store, mirror)


def seed_transaction(store, transaction):
    store.seed(TRANSACTIONS, transaction.id, transaction.to_document())
