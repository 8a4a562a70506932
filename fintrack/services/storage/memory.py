"""
In-Memory Document Store

Backs demo/offline mode and the test suite. Nothing is persisted: a new
store starts from whatever it is seeded with, so a page reload never sees
writes from an earlier session.

Commits validate every precondition first and only then apply the whole
batch, so a failing batch leaves the store untouched. Subscribers of the
affected collections get a fresh snapshot either way.
"""

import copy
import threading
from typing import Any, Optional

import structlog

from fintrack.services.storage.interface import (
    OWNER_FIELD,
    ConflictError,
    DocumentStoreInterface,
    DuplicateError,
    NotFoundError,
    SnapshotCallback,
    StorageError,
    StoredDocument,
    Subscription,
    WriteBatch,
    check_preconditions,
)


logger = structlog.get_logger(__name__)


class InMemoryDocumentStore(DocumentStoreInterface):
    """Dictionary-backed implementation of the document store."""

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._subscriptions: list[Subscription] = []
        self._lock = threading.RLock()

    def seed(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Put a document in place without notifying subscribers."""
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = dict(data)

    def _snapshot(self, collection: str, owner_id: str) -> list[StoredDocument]:
        docs = self._collections.get(collection, {})
        return [
            StoredDocument(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in docs.items()
            if data.get(OWNER_FIELD) == owner_id
        ]

    def _detach(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    async def subscribe(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
    ) -> Subscription:
        subscription = Subscription(collection, owner_id, callback, self._detach)
        with self._lock:
            self._subscriptions.append(subscription)
            snapshot = self._snapshot(collection, owner_id)
        subscription.deliver(snapshot)
        return subscription

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def _pending_snapshots(self, collections: set[str]) -> list[tuple[Subscription, list[StoredDocument]]]:
        return [
            (sub, self._snapshot(sub.collection, sub.owner_id))
            for sub in self._subscriptions
            if sub.collection in collections
        ]

    async def commit(self, batch: WriteBatch) -> None:
        rejection: Optional[StorageError] = None
        with self._lock:
            try:
                check_preconditions(batch, self._collections)
            except (ConflictError, DuplicateError, NotFoundError) as e:
                rejection = e
            else:
                staged = copy.deepcopy(self._collections)
                for op in batch.operations:
                    docs = staged.setdefault(op.collection, {})
                    if op.kind == "create":
                        docs[op.doc_id] = dict(op.data)
                    elif op.kind == "update":
                        docs[op.doc_id].update(op.data)
                    elif op.kind == "delete":
                        docs.pop(op.doc_id, None)
                self._collections = staged
            pending = self._pending_snapshots(batch.collections)

        # A rejected writer is also brought up to date so a retry can succeed
        for subscription, snapshot in pending:
            subscription.deliver(snapshot)

        if rejection is not None:
            logger.info("memory_store.rejected", error=str(rejection))
            raise rejection
        logger.debug("memory_store.committed", operations=len(batch))
