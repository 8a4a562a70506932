"""
Live Collection Mirror

Keeps a local, read-only copy of one owner's accounts and transactions.

Every snapshot pushed by the store replaces the local list wholesale; the
mirror never patches records in place and local code never writes to it.
Transactions are kept newest first (by creation time).
"""

from decimal import Decimal
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from fintrack.models.ledger import BankAccount, Transaction
from fintrack.reports import total_balance
from fintrack.services.storage import (
    ACCOUNTS,
    TRANSACTIONS,
    DocumentStoreInterface,
    StoredDocument,
    Subscription,
)


logger = structlog.get_logger(__name__)

MirrorListener = Callable[[str], None]


class LiveCollectionMirror:
    """
    Owner-scoped mirror of the accounts and transactions collections.

    Usage:
        mirror = LiveCollectionMirror(store, user.uid)
        await mirror.start()
        ...
        mirror.close()
    """

    def __init__(self, store: DocumentStoreInterface, owner_id: str):
        self._store = store
        self.owner_id = owner_id
        self._accounts: list[BankAccount] = []
        self._transactions: list[Transaction] = []
        self._total_balance = Decimal("0")
        self._subscriptions: list[Subscription] = []
        self._listeners: list[MirrorListener] = []

    @property
    def accounts(self) -> list[BankAccount]:
        return list(self._accounts)

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    @property
    def total_balance(self) -> Decimal:
        """Sum of all mirrored account balances."""
        return self._total_balance

    @property
    def is_live(self) -> bool:
        return any(sub.active for sub in self._subscriptions)

    def find_account(self, account_id: str) -> Optional[BankAccount]:
        for account in self._accounts:
            if account.id == account_id:
                return account
        return None

    def add_listener(self, listener: MirrorListener) -> None:
        """Listener is called with the collection name after each snapshot."""
        self._listeners.append(listener)

    async def start(self) -> None:
        """Subscribe to both collections; the first snapshots arrive before this returns."""
        if self.is_live:
            return
        self._subscriptions = [
            await self._store.subscribe(ACCOUNTS, self.owner_id, self._on_accounts),
            await self._store.subscribe(TRANSACTIONS, self.owner_id, self._on_transactions),
        ]
        logger.info("mirror.started", owner_id=self.owner_id)

    def close(self) -> None:
        """Unsubscribe from the store. The last snapshot stays readable."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        logger.info("mirror.closed", owner_id=self.owner_id)

    def _parse(self, model, documents: list[StoredDocument]) -> list:
        records = []
        for doc in documents:
            try:
                records.append(model.from_document(doc.id, doc.data))
            except ValidationError as e:
                logger.warning(
                    "mirror.document_skipped",
                    model=model.__name__,
                    doc_id=doc.id,
                    error=str(e),
                )
        return records

    def _on_accounts(self, documents: list[StoredDocument]) -> None:
        accounts = self._parse(BankAccount, documents)
        self._accounts = accounts
        self._total_balance = total_balance(accounts)
        logger.debug("mirror.snapshot_applied", collection=ACCOUNTS, count=len(accounts))
        self._notify(ACCOUNTS)

    def _on_transactions(self, documents: list[StoredDocument]) -> None:
        transactions = self._parse(Transaction, documents)
        transactions.sort(key=lambda t: t.created_at, reverse=True)
        self._transactions = transactions
        logger.debug(
            "mirror.snapshot_applied",
            collection=TRANSACTIONS,
            count=len(transactions),
        )
        self._notify(TRANSACTIONS)

    def _notify(self, collection: str) -> None:
        for listener in list(self._listeners):
            listener(collection)
