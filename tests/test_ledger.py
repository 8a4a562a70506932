"""
Tests for the Ledger Mutator

The balance of an account must always equal its opening balance plus the
signed sum of its live transactions, across any sequence of creates and
deletes.
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from conftest import OWNER, make_account, make_transaction, seed_transaction
from fintrack.ledger import (
    AccountNotFoundError,
    BalanceConflictError,
    LedgerError,
    LedgerMutator,
    OfflineModeError,
)
from fintrack.mirror import LiveCollectionMirror
from fintrack.models import TransactionType
from fintrack.services.storage import (
    ACCOUNTS,
    TRANSACTIONS,
    InMemoryDocumentStore,
    StorageError,
)
from fintrack.session import DEMO_USER, create_demo_store


class FailingStore(InMemoryDocumentStore):
    """A store whose commits always fail."""

    async def commit(self, batch):
        raise StorageError("backend unavailable")


class TestCreateTransaction:
    """Posting a transaction moves the balance in the same batch."""

    @pytest.mark.asyncio
    async def test_expense_decreases_balance(self, store, mirror, ledger):
        txn = await ledger.create_transaction(
            account_id="a1",
            amount=Decimal("250.50"),
            type=TransactionType.EXPENSE,
            category_id="cat-1",
            note="Dinner",
        )

        assert mirror.find_account("a1").balance == Decimal("749.50")
        assert (await store.get(TRANSACTIONS, txn.id))["note"] == "Dinner"
        assert [t.id for t in mirror.transactions] == [txn.id]

    @pytest.mark.asyncio
    async def test_income_increases_balance(self, mirror, ledger):
        await ledger.create_transaction("a1", Decimal("300"), TransactionType.INCOME, "cat-3")

        assert mirror.find_account("a1").balance == Decimal("1300")

    @pytest.mark.asyncio
    async def test_version_is_bumped(self, store, ledger):
        await ledger.create_transaction("a1", Decimal("1"), TransactionType.EXPENSE, "cat-6")

        assert (await store.get(ACCOUNTS, "a1"))["version"] == 1

    @pytest.mark.asyncio
    async def test_date_defaults_to_today(self, ledger):
        txn = await ledger.create_transaction("a1", Decimal("1"), TransactionType.EXPENSE, "cat-6")

        assert txn.date == date.today()
        assert txn.owner_id == OWNER

    @pytest.mark.asyncio
    async def test_unknown_account_writes_nothing(self, store, mirror, ledger):
        with pytest.raises(AccountNotFoundError):
            await ledger.create_transaction("missing", Decimal("10"), TransactionType.EXPENSE, "cat-1")

        assert mirror.transactions == []
        assert mirror.find_account("a1").balance == Decimal("1000")

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, mirror, ledger):
        with pytest.raises(ValidationError):
            await ledger.create_transaction("a1", Decimal("0"), TransactionType.EXPENSE, "cat-1")

        assert mirror.find_account("a1").balance == Decimal("1000")


class TestDeleteTransaction:
    """Deleting a transaction reverses its effect."""

    @pytest.mark.asyncio
    async def test_round_trip_restores_balance(self, mirror, ledger):
        txn = await ledger.create_transaction("a1", Decimal("99.99"), TransactionType.EXPENSE, "cat-2")

        result = await ledger.delete_transaction(txn)

        assert result.balance_adjusted is True
        assert result.new_balance == Decimal("1000.00")
        assert mirror.find_account("a1").balance == Decimal("1000")
        assert mirror.transactions == []

    @pytest.mark.asyncio
    async def test_income_delete_decreases_balance(self, mirror, ledger):
        txn = await ledger.create_transaction("a1", Decimal("500"), TransactionType.INCOME, "cat-3")
        assert mirror.find_account("a1").balance == Decimal("1500")

        await ledger.delete_transaction(txn)

        assert mirror.find_account("a1").balance == Decimal("1000")

    @pytest.mark.asyncio
    async def test_orphan_delete_skips_balance(self, store, mirror, ledger):
        orphan = make_transaction(txn_id="t-orphan", account_id="gone", amount="40")
        seed_transaction(store, orphan)

        result = await ledger.delete_transaction(orphan)

        assert result.balance_adjusted is False
        assert result.new_balance is None
        assert await store.get(TRANSACTIONS, "t-orphan") is None
        assert mirror.find_account("a1").balance == Decimal("1000")

    @pytest.mark.asyncio
    async def test_balance_invariant_over_sequence(self, mirror, ledger):
        posted = []
        for amount, type in [
            ("120", TransactionType.EXPENSE),
            ("2000", TransactionType.INCOME),
            ("35.25", TransactionType.EXPENSE),
            ("0.75", TransactionType.INCOME),
        ]:
            posted.append(await ledger.create_transaction("a1", Decimal(amount), type, "cat-6"))

        await ledger.delete_transaction(posted[1])

        live = mirror.transactions
        expected = Decimal("1000") + sum((t.signed_amount for t in live), Decimal("0"))
        assert mirror.find_account("a1").balance == expected
        assert expected == Decimal("845.50")


class TestFailures:
    """A failed commit changes nothing."""

    @pytest.mark.asyncio
    async def test_failing_store_leaves_state_unchanged(self):
        store = FailingStore()
        account = make_account()
        store.seed(ACCOUNTS, account.id, account.to_document())
        mirror = LiveCollectionMirror(store, OWNER)
        await mirror.start()
        ledger = LedgerMutator(store, mirror)

        with pytest.raises(LedgerError, match="backend unavailable"):
            await ledger.create_transaction("a1", Decimal("10"), TransactionType.EXPENSE, "cat-1")

        assert mirror.find_account("a1").balance == Decimal("1000")
        assert mirror.transactions == []

    @pytest.mark.asyncio
    async def test_stale_version_is_rejected(self, store, mirror, ledger):
        # Another session moved the balance; this mirror has not seen it yet
        stale = mirror.find_account("a1")
        await store.update_fields(ACCOUNTS, "a1", {"balance": "900", "version": 5})
        mirror._accounts = [stale]

        with pytest.raises(BalanceConflictError):
            await ledger.create_transaction("a1", Decimal("10"), TransactionType.EXPENSE, "cat-1")

        stored = await store.get(ACCOUNTS, "a1")
        assert stored["balance"] == "900"
        assert mirror.transactions == []

    @pytest.mark.asyncio
    async def test_conflict_brings_mirror_up_to_date(self, store, mirror, ledger):
        stale = mirror.find_account("a1")
        await store.update_fields(ACCOUNTS, "a1", {"balance": "900", "version": 5})
        mirror._accounts = [stale]

        with pytest.raises(BalanceConflictError):
            await ledger.create_transaction("a1", Decimal("10"), TransactionType.EXPENSE, "cat-1")

        assert mirror.find_account("a1").version == 5

        await ledger.create_transaction("a1", Decimal("10"), TransactionType.EXPENSE, "cat-1")

        assert mirror.find_account("a1").balance == Decimal("890")
        assert (await store.get(ACCOUNTS, "a1"))["version"] == 6

    @pytest.mark.asyncio
    async def test_delete_retry_after_account_vanished(self, store, mirror, ledger):
        txn = await ledger.create_transaction("a1", Decimal("10"), TransactionType.EXPENSE, "cat-1")
        # Removed by another session; this mirror still lists the account
        stale = mirror.find_account("a1")
        await store.delete(ACCOUNTS, "a1")
        mirror._accounts = [stale]

        with pytest.raises(LedgerError, match="not found"):
            await ledger.delete_transaction(txn)

        assert mirror.find_account("a1") is None

        result = await ledger.delete_transaction(txn)

        assert result.balance_adjusted is False
        assert await store.get(TRANSACTIONS, txn.id) is None


class TestOfflineMode:
    """Demo mode refuses every write."""

    @pytest.mark.asyncio
    async def test_every_write_refused(self):
        store = create_demo_store()
        mirror = LiveCollectionMirror(store, DEMO_USER.uid)
        await mirror.start()
        ledger = LedgerMutator(store, mirror, offline_mode=True)
        account = mirror.find_account("m1")

        with pytest.raises(OfflineModeError):
            await ledger.create_transaction("m1", Decimal("10"), TransactionType.EXPENSE, "cat-1")
        with pytest.raises(OfflineModeError):
            await ledger.delete_transaction(mirror.transactions[0])
        with pytest.raises(OfflineModeError):
            await ledger.create_account("New", "Bank", Decimal("0"))
        with pytest.raises(OfflineModeError):
            await ledger.update_account(account, "Renamed", "Bank", Decimal("1"))
        with pytest.raises(OfflineModeError):
            await ledger.delete_account(account)

        assert mirror.find_account("m1").balance == Decimal("5000")
        assert mirror.find_account("m1").name == "Demo Cash"
        assert len(mirror.accounts) == 2
        assert len(mirror.transactions) == 2

    @pytest.mark.asyncio
    async def test_demo_cash_scenario(self):
        store = create_demo_store()
        mirror = LiveCollectionMirror(store, DEMO_USER.uid)
        await mirror.start()
        ledger = LedgerMutator(store, mirror)

        txn = await ledger.create_transaction("m1", Decimal("150"), TransactionType.EXPENSE, "cat-1")
        assert mirror.find_account("m1").balance == Decimal("4850")

        await ledger.delete_transaction(txn)
        assert mirror.find_account("m1").balance == Decimal("5000")


class TestAccounts:
    """Account maintenance."""

    @pytest.mark.asyncio
    async def test_create_account(self, mirror, ledger):
        account = await ledger.create_account("Savings", "First Bank", Decimal("250"))

        assert account.version == 0
        assert account.color.startswith("#") and len(account.color) == 7
        assert mirror.find_account(account.id).balance == Decimal("250")
        assert mirror.total_balance == Decimal("1250")

    @pytest.mark.asyncio
    async def test_update_account(self, mirror, ledger):
        await ledger.update_account(mirror.find_account("a1"), "Main", "Other Bank", Decimal("42"))

        account = mirror.find_account("a1")
        assert account.name == "Main"
        assert account.bank_name == "Other Bank"
        assert account.balance == Decimal("42")
        assert account.version == 1

    @pytest.mark.asyncio
    async def test_delete_account_keeps_transactions(self, mirror, ledger):
        txn = await ledger.create_transaction("a1", Decimal("10"), TransactionType.EXPENSE, "cat-1")

        await ledger.delete_account(mirror.find_account("a1"))

        assert mirror.accounts == []
        assert [t.id for t in mirror.transactions] == [txn.id]

        result = await ledger.delete_transaction(txn)
        assert result.balance_adjusted is False
