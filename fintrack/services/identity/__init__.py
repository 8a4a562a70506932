"""Identity services package."""

from fintrack.services.identity.firebase_auth import (
    AuthenticationError,
    FirebaseIdentityClient,
    IdentityError,
)

__all__ = [
    "AuthenticationError",
    "FirebaseIdentityClient",
    "IdentityError",
]
