"""
Storage Services Package

Provides the abstract document store interface and its implementations:
Google Sheets for the hosted backend, in-memory for demo mode and tests.
"""

from fintrack.services.storage.interface import (
    ACCOUNTS,
    COLLECTIONS,
    TRANSACTIONS,
    BatchOperation,
    ConflictError,
    ConnectionError,
    DocumentStoreInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
    StoredDocument,
    Subscription,
    WriteBatch,
)
from fintrack.services.storage.memory import InMemoryDocumentStore
from fintrack.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)

__all__ = [
    # Interface
    "ACCOUNTS",
    "COLLECTIONS",
    "TRANSACTIONS",
    "BatchOperation",
    "DocumentStoreInterface",
    "StoredDocument",
    "Subscription",
    "WriteBatch",
    # Exceptions
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
]
