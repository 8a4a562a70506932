"""
Ledger Mutator

The only multi-step business rule in FinTrack: posting or removing a
transaction must move the owning account's balance in the same atomic
batch.

    create:  insert transaction  +  balance := balance + delta
    delete:  delete transaction  +  balance := balance - delta
    where delta = +amount for income, -amount for expense

CONCURRENCY: the new balance is computed from the mirrored account. Each
balance write carries the account version the mirror saw, and the store
rejects the whole batch if the stored version has moved on. Two sessions
racing on one account therefore cannot silently lose a delta; the loser
gets BalanceConflictError and retries once the mirror has caught up.

FAILURES: nothing is retried and nothing is queued. A failed commit
leaves both records untouched and is re-raised to the caller.
"""

import random
from datetime import date
from decimal import Decimal
from typing import Optional

import structlog
from pydantic import BaseModel

from fintrack.mirror import LiveCollectionMirror
from fintrack.models.ledger import (
    BankAccount,
    Transaction,
    TransactionType,
    now_millis,
)
from fintrack.services.storage import (
    ACCOUNTS,
    TRANSACTIONS,
    ConflictError,
    DocumentStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class LedgerError(Exception):
    """A ledger write was not applied."""
    pass


class OfflineModeError(LedgerError):
    """Writes are disabled in demo/offline mode."""

    def __init__(self, message: str = "Saving is not available in demo mode."):
        super().__init__(message)


class AccountNotFoundError(LedgerError):
    """The target account is not in the mirror."""
    pass


class BalanceConflictError(LedgerError):
    """The account changed in another session since it was mirrored."""
    pass


class DeleteResult(BaseModel):
    """Outcome of deleting a transaction."""

    transaction_id: str
    balance_adjusted: bool
    new_balance: Optional[Decimal] = None


def random_color() -> str:
    return "#{:06x}".format(random.randint(0, 0xFFFFFF))


class LedgerMutator:
    """
    Writes accounts and transactions for the mirrored owner.

    Args:
        store: The document store to commit to
        mirror: Source of current balances and account versions
        offline_mode: Refuse every write when True
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        mirror: LiveCollectionMirror,
        offline_mode: bool = False,
    ):
        self._store = store
        self._mirror = mirror
        self._offline_mode = offline_mode

    @property
    def owner_id(self) -> str:
        return self._mirror.owner_id

    def _ensure_online(self, operation: str) -> None:
        if self._offline_mode:
            logger.info("ledger.offline_write_refused", operation=operation)
            raise OfflineModeError()

    async def _commit(self, batch, operation: str, **context) -> None:
        try:
            await self._store.commit(batch)
        except ConflictError as e:
            logger.warning("ledger.balance_conflict", operation=operation, error=str(e), **context)
            raise BalanceConflictError(
                "This account was changed elsewhere. Please try again."
            ) from e
        except StorageError as e:
            logger.error("ledger.commit_failed", operation=operation, error=str(e), **context)
            raise LedgerError(f"Could not save changes: {e}") from e

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def create_transaction(
        self,
        account_id: str,
        amount: Decimal,
        type: TransactionType,
        category_id: str,
        note: str = "",
        txn_date: Optional[date] = None,
    ) -> Transaction:
        """
        Record a transaction and move its account's balance.

        Raises:
            OfflineModeError: In demo mode
            AccountNotFoundError: The account is not mirrored
            BalanceConflictError: The account changed elsewhere
            LedgerError: The store rejected the batch
            pydantic.ValidationError: amount is not positive
        """
        self._ensure_online("create_transaction")

        account = self._mirror.find_account(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")

        transaction = Transaction(
            id=self._store.new_document_id(),
            owner_id=self.owner_id,
            account_id=account_id,
            amount=amount,
            type=type,
            category_id=category_id,
            note=note,
            date=txn_date or date.today(),
            created_at=now_millis(),
        )
        new_balance = account.balance + transaction.signed_amount

        batch = self._store.new_batch()
        batch.create(TRANSACTIONS, transaction.id, transaction.to_document())
        batch.update(
            ACCOUNTS,
            account.id,
            {"balance": str(new_balance), "version": account.version + 1},
            expected_version=account.version,
        )
        await self._commit(batch, "create_transaction", account_id=account.id)

        logger.info(
            "ledger.transaction_created",
            transaction_id=transaction.id,
            account_id=account.id,
            type=transaction.type.value,
            amount=str(transaction.amount),
            new_balance=str(new_balance),
        )
        return transaction

    async def delete_transaction(self, transaction: Transaction) -> DeleteResult:
        """
        Delete a transaction and reverse its effect on the balance.

        If the account is gone the transaction is still deleted; the
        reversal is skipped and reported via `balance_adjusted=False`.
        """
        self._ensure_online("delete_transaction")

        batch = self._store.new_batch()
        batch.delete(TRANSACTIONS, transaction.id)

        account = self._mirror.find_account(transaction.account_id)
        new_balance = None
        if account is not None:
            new_balance = account.balance - transaction.signed_amount
            batch.update(
                ACCOUNTS,
                account.id,
                {"balance": str(new_balance), "version": account.version + 1},
                expected_version=account.version,
            )
        else:
            logger.warning(
                "ledger.orphan_transaction_deleted",
                transaction_id=transaction.id,
                account_id=transaction.account_id,
                amount=str(transaction.amount),
            )

        await self._commit(batch, "delete_transaction", transaction_id=transaction.id)

        logger.info(
            "ledger.transaction_deleted",
            transaction_id=transaction.id,
            balance_adjusted=account is not None,
        )
        return DeleteResult(
            transaction_id=transaction.id,
            balance_adjusted=account is not None,
            new_balance=new_balance,
        )

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def create_account(
        self,
        name: str,
        bank_name: str,
        balance: Decimal,
    ) -> BankAccount:
        """Open an account with an opening balance and a random colour."""
        self._ensure_online("create_account")

        account = BankAccount(
            id=self._store.new_document_id(),
            owner_id=self.owner_id,
            name=name,
            bank_name=bank_name,
            balance=balance,
            color=random_color(),
            created_at=now_millis(),
            version=0,
        )
        await self._commit(
            self._store.new_batch().create(ACCOUNTS, account.id, account.to_document()),
            "create_account",
        )
        logger.info("ledger.account_created", account_id=account.id)
        return account

    async def update_account(
        self,
        account: BankAccount,
        name: str,
        bank_name: str,
        balance: Decimal,
    ) -> None:
        """Edit name, bank and balance directly."""
        self._ensure_online("update_account")

        batch = self._store.new_batch().update(
            ACCOUNTS,
            account.id,
            {
                "name": name,
                "bankName": bank_name,
                "balance": str(balance),
                "version": account.version + 1,
            },
            expected_version=account.version,
        )
        await self._commit(batch, "update_account", account_id=account.id)
        logger.info("ledger.account_updated", account_id=account.id)

    async def delete_account(self, account: BankAccount) -> None:
        """
        Delete an account.

        Its transactions are left in place; deleting one later skips
        the balance reversal.
        """
        self._ensure_online("delete_account")

        await self._commit(
            self._store.new_batch().delete(ACCOUNTS, account.id),
            "delete_account",
            account_id=account.id,
        )
        logger.info("ledger.account_deleted", account_id=account.id)
