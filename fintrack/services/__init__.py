"""Services package."""

from fintrack.services.identity import (
    AuthenticationError,
    FirebaseIdentityClient,
    IdentityError,
)
from fintrack.services.storage import (
    ConflictError,
    ConnectionError,
    DocumentStoreInterface,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Identity services
    "AuthenticationError",
    "FirebaseIdentityClient",
    "IdentityError",
    # Storage services
    "ConflictError",
    "ConnectionError",
    "DocumentStoreInterface",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "StorageError",
]
