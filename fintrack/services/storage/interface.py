"""
Abstract Document Store Interface

DESIGN DECISION: We define an abstract interface for the document store.
This allows us to:
1. Swap the hosted backend without touching the ledger or the UI
2. Use in-memory storage for demo mode and testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally small - we're not building a database.
It offers owner-scoped live queries, single-document writes, and an
atomic batch that applies several writes all together or not at all.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


ACCOUNTS = "accounts"
TRANSACTIONS = "transactions"
COLLECTIONS = (ACCOUNTS, TRANSACTIONS)

OWNER_FIELD = "userId"
VERSION_FIELD = "version"


class StoredDocument(BaseModel):
    """One document as delivered in a snapshot."""

    id: str
    data: dict[str, Any] = Field(default_factory=dict)


SnapshotCallback = Callable[[list[StoredDocument]], None]


class BatchOperation(BaseModel):
    """A single write queued in a WriteBatch."""

    kind: Literal["create", "update", "delete"]
    collection: str
    doc_id: str
    data: dict[str, Any] = Field(default_factory=dict)
    expected_version: Optional[int] = Field(
        default=None,
        description="Commit fails unless the stored version equals this"
    )


class WriteBatch:
    """
    A group of writes committed atomically by `DocumentStoreInterface.commit`.

    Operations are only recorded here; nothing reaches the store until
    the batch is committed.
    """

    def __init__(self):
        self._operations: list[BatchOperation] = []

    def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> "WriteBatch":
        self._operations.append(BatchOperation(
            kind="create", collection=collection, doc_id=doc_id, data=dict(data),
        ))
        return self

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> "WriteBatch":
        self._operations.append(BatchOperation(
            kind="update",
            collection=collection,
            doc_id=doc_id,
            data=dict(fields),
            expected_version=expected_version,
        ))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self._operations.append(BatchOperation(
            kind="delete", collection=collection, doc_id=doc_id,
        ))
        return self

    @property
    def operations(self) -> list[BatchOperation]:
        return list(self._operations)

    @property
    def collections(self) -> set[str]:
        return {op.collection for op in self._operations}

    def __len__(self) -> int:
        return len(self._operations)


class Subscription:
    """
    A live, owner-scoped query.

    The store calls `deliver` with the full result set every time it
    changes. `unsubscribe` stops delivery and detaches from the store;
    calling it twice is harmless.
    """

    def __init__(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
        on_cancel: Optional[Callable[["Subscription"], None]] = None,
    ):
        self.collection = collection
        self.owner_id = owner_id
        self._callback = callback
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, documents: list[StoredDocument]) -> None:
        if self._active:
            self._callback(documents)

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._on_cancel:
            self._on_cancel(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.unsubscribe()


class DocumentStoreInterface(ABC):
    """
    Abstract interface for the document store.

    Any backend (Google Sheets, in-memory, ...) must implement
    `subscribe`, `get` and `commit`. Single-document writes are
    one-operation batches.
    """

    @abstractmethod
    async def subscribe(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
    ) -> Subscription:
        """
        Start a live query over one owner's documents.

        The current snapshot is delivered before this returns, and a
        fresh full snapshot is delivered after every change.
        """
        pass

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """
        Read one document.

        Returns:
            The document data if found, None otherwise
        """
        pass

    @abstractmethod
    async def commit(self, batch: WriteBatch) -> None:
        """
        Apply every operation in the batch, or none of them.

        Raises:
            DuplicateError: A create targets an existing document
            NotFoundError: An update targets a missing document
            ConflictError: An update's expected_version is stale
            StorageError: The backend rejected or failed the write
        """
        pass

    def new_batch(self) -> WriteBatch:
        return WriteBatch()

    @staticmethod
    def new_document_id() -> str:
        return uuid4().hex

    async def insert(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: Optional[str] = None,
    ) -> str:
        """Create one document and return its id."""
        doc_id = doc_id or self.new_document_id()
        await self.commit(self.new_batch().create(collection, doc_id, data))
        return doc_id

    async def update_fields(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
    ) -> None:
        """Overwrite some fields of one document."""
        await self.commit(self.new_batch().update(collection, doc_id, fields))

    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete one document. Deleting a missing document is a no-op."""
        await self.commit(self.new_batch().delete(collection, doc_id))


def check_preconditions(
    batch: WriteBatch,
    current: dict[str, dict[str, dict[str, Any]]],
) -> None:
    """
    Validate a batch against the current documents, before any write.

    Args:
        batch: The batch about to be committed
        current: {collection: {doc_id: data}} as stored right now

    Raises:
        DuplicateError, NotFoundError or ConflictError
    """
    for op in batch.operations:
        docs = current.get(op.collection, {})
        if op.kind == "create" and op.doc_id in docs:
            raise DuplicateError(f"{op.collection}/{op.doc_id} already exists")
        if op.kind != "update":
            continue
        if op.doc_id not in docs:
            raise NotFoundError(f"{op.collection}/{op.doc_id} not found")
        if op.expected_version is not None:
            stored = int(docs[op.doc_id].get(VERSION_FIELD) or 0)
            if stored != op.expected_version:
                raise ConflictError(
                    f"{op.collection}/{op.doc_id} changed "
                    f"(version {stored}, expected {op.expected_version})"
                )


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConflictError(StorageError):
    """The document changed since it was read."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
