"""
Identity Service using Firebase Authentication

Email/password sign-in and sign-up go through the Identity Toolkit REST
API. The service is a black box: it answers with an identity (uid, email,
ID token) or an error code, which we translate into a message a user can
act on.

Sign-out is local; the hosted service keeps no session for us to end.
"""

from typing import Any, Optional

import httpx
import structlog

from fintrack.config import get_settings
from fintrack.models.ledger import UserProfile


logger = structlog.get_logger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"

# Error codes returned by the service, and what we tell the user
ERROR_MESSAGES = {
    "EMAIL_NOT_FOUND": "No account exists for this email.",
    "INVALID_PASSWORD": "The password is incorrect.",
    "INVALID_LOGIN_CREDENTIALS": "Email or password is incorrect.",
    "USER_DISABLED": "This account has been disabled.",
    "EMAIL_EXISTS": "An account with this email already exists.",
    "INVALID_EMAIL": "The email address is not valid.",
    "MISSING_PASSWORD": "Please enter a password.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Please try again later.",
}


class IdentityError(Exception):
    """Base exception for identity service errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class AuthenticationError(IdentityError):
    """The service rejected the credentials."""
    pass


def describe_error(code: str) -> str:
    """Map a service error code to a user-facing message."""
    # Codes can carry detail, e.g. "WEAK_PASSWORD : Password should be..."
    key = code.split(":", 1)[0].strip()
    if key == "WEAK_PASSWORD":
        return "The password must be at least 6 characters."
    return ERROR_MESSAGES.get(key, code)


class FirebaseIdentityClient:
    """Async client for email/password authentication."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = IDENTITY_TOOLKIT_URL,
        timeout: float = 30.0,
    ):
        self._api_key = api_key or get_settings().backend.config.api_key
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.post(
                f"/accounts:{endpoint}",
                params={"key": self._api_key},
                json=payload,
            )
        except httpx.RequestError as e:
            raise IdentityError(f"Identity service unreachable: {e}") from e

        if response.status_code >= 400:
            try:
                code = response.json()["error"]["message"]
            except Exception:
                code = f"HTTP_{response.status_code}"
            logger.info("identity.request_rejected", endpoint=endpoint, code=code)
            if response.status_code == 400:
                raise AuthenticationError(describe_error(code), code=code)
            raise IdentityError(describe_error(code), code=code)

        return response.json()

    def _to_profile(self, data: dict[str, Any]) -> UserProfile:
        return UserProfile(
            uid=data["localId"],
            email=data.get("email", ""),
            display_name=data.get("displayName") or None,
            id_token=data.get("idToken"),
        )

    async def sign_in(self, email: str, password: str) -> UserProfile:
        """Sign in with email and password."""
        data = await self._post("signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        profile = self._to_profile(data)
        logger.info("identity.signed_in", uid=profile.uid)
        return profile

    async def sign_up(self, email: str, password: str) -> UserProfile:
        """Create a new account and sign it in."""
        data = await self._post("signUp", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        profile = self._to_profile(data)
        logger.info("identity.signed_up", uid=profile.uid)
        return profile
