"""
Session Manager

Tracks who is signed in. The state is binary: an identity is present or
it is not. Listeners are told about every change.

DEMO MODE: when no backend credentials resolve, signing in never
contacts anything. It activates a fixed demo identity whose data is two
demo accounts and two demo transactions held in memory for this session
only. The ledger refuses every write in this mode.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Optional

import structlog

from fintrack.models.ledger import (
    BankAccount,
    Transaction,
    TransactionType,
    UserProfile,
    now_millis,
)
from fintrack.services.identity import AuthenticationError, FirebaseIdentityClient
from fintrack.services.storage import ACCOUNTS, TRANSACTIONS, InMemoryDocumentStore


logger = structlog.get_logger(__name__)

DEMO_USER = UserProfile(
    uid="demo-user",
    email="demo@fintrack.local",
    display_name="Demo",
)

SessionListener = Callable[[Optional[UserProfile]], None]


def build_demo_dataset(
    owner_id: str = DEMO_USER.uid,
    today: Optional[date] = None,
    now: Optional[int] = None,
) -> tuple[list[BankAccount], list[Transaction]]:
    """The fixed demo accounts and transactions."""
    today = today or date.today()
    now = now if now is not None else now_millis()

    accounts = [
        BankAccount(
            id="m1", owner_id=owner_id, name="Demo Cash", bank_name="My Wallet",
            balance=Decimal("5000"), color="#6366f1", created_at=now,
        ),
        BankAccount(
            id="m2", owner_id=owner_id, name="Demo Bank", bank_name="Cathay United",
            balance=Decimal("120000"), color="#10b981", created_at=now,
        ),
    ]
    transactions = [
        Transaction(
            id="t1", owner_id=owner_id, account_id="m1", amount=Decimal("150"),
            type=TransactionType.EXPENSE, category_id="cat-1",
            note="Sample: lunch box", date=today, created_at=now,
        ),
        Transaction(
            id="t2", owner_id=owner_id, account_id="m2", amount=Decimal("35000"),
            type=TransactionType.INCOME, category_id="cat-3",
            note="Sample: monthly salary", date=today, created_at=now - 1000,
        ),
    ]
    return accounts, transactions


def create_demo_store(owner_id: str = DEMO_USER.uid) -> InMemoryDocumentStore:
    """A fresh in-memory store holding only the demo dataset."""
    store = InMemoryDocumentStore()
    accounts, transactions = build_demo_dataset(owner_id)
    for account in accounts:
        store.seed(ACCOUNTS, account.id, account.to_document())
    for transaction in transactions:
        store.seed(TRANSACTIONS, transaction.id, transaction.to_document())
    return store


class SessionManager:
    """
    Holds the current identity.

    Args:
        identity: Client for the hosted identity service. Not used,
                  and may be None, in offline mode.
        offline_mode: True when backend credentials are absent.
    """

    def __init__(
        self,
        identity: Optional[FirebaseIdentityClient] = None,
        offline_mode: bool = False,
    ):
        if identity is None and not offline_mode:
            raise ValueError("An identity client is required outside offline mode")
        self._identity = identity
        self._offline_mode = offline_mode
        self._user: Optional[UserProfile] = None
        self._listeners: list[SessionListener] = []

    @property
    def offline_mode(self) -> bool:
        return self._offline_mode

    @property
    def current_user(self) -> Optional[UserProfile]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        """Register for identity changes; returns a function that unregisters."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _set_user(self, user: Optional[UserProfile]) -> None:
        self._user = user
        for listener in list(self._listeners):
            listener(user)

    async def sign_in(self, email: str, password: str) -> UserProfile:
        """
        Sign in with email and password.

        Raises:
            AuthenticationError: Credentials were rejected
            IdentityError: The service could not be reached
        """
        if self._offline_mode:
            logger.info("session.demo_started")
            self._set_user(DEMO_USER)
            return DEMO_USER

        if not email or not password:
            raise AuthenticationError("Please enter both email and password.")

        user = await self._identity.sign_in(email, password)
        self._set_user(user)
        return user

    async def sign_up(self, email: str, password: str) -> UserProfile:
        """Create an account and sign in as it."""
        if self._offline_mode:
            logger.info("session.demo_started")
            self._set_user(DEMO_USER)
            return DEMO_USER

        if not email or not password:
            raise AuthenticationError("Please enter both email and password.")

        user = await self._identity.sign_up(email, password)
        self._set_user(user)
        return user

    def sign_out(self) -> None:
        if self._user is None:
            return
        logger.info("session.signed_out", uid=self._user.uid)
        self._set_user(None)

    async def close(self) -> None:
        """Release the identity client's HTTP connections. It reconnects on next use."""
        if self._identity is not None:
            await self._identity.close()
