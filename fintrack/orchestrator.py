"""
Main Orchestrator for FinTrack

This module ties together all the components and holds the application
state the UI works against:
1. Session (who is signed in)
2. Mirror (their accounts and transactions)
3. Ledger (the only way to write)
4. Advisor (AI advice)
5. UI state (active tab, last advice)

DESIGN DECISION: There are no module-level singletons. One AppState is
created per UI session and passed to every view. Signing in opens the
mirror; signing out closes it deterministically.
"""

from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

import structlog

from fintrack.agents import AdviceRequester, can_request_advice
from fintrack.config import Settings, get_settings
from fintrack.ledger import LedgerMutator
from fintrack.mirror import LiveCollectionMirror
from fintrack.models.ledger import DEFAULT_CATEGORIES, UserProfile
from fintrack.session import SessionManager, create_demo_store
from fintrack.services.identity import FirebaseIdentityClient
from fintrack.services.storage import (
    DocumentStoreInterface,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)


logger = structlog.get_logger(__name__)

StoreFactory = Callable[[UserProfile], DocumentStoreInterface]


class Tab(str, Enum):
    """Top-level pages."""
    DASHBOARD = "dashboard"
    ACCOUNTS = "accounts"
    TRANSACTIONS = "transactions"
    REPORTS = "reports"


class AppState:
    """
    Everything one UI session needs, passed explicitly to views.

    Args:
        session: Session manager
        store_factory: Returns the document store for a signed-in user
        advisor: AI advice requester
    """

    def __init__(
        self,
        session: SessionManager,
        store_factory: StoreFactory,
        advisor: AdviceRequester,
    ):
        self.session = session
        self.advisor = advisor
        self._store_factory = store_factory
        self.mirror: Optional[LiveCollectionMirror] = None
        self.ledger: Optional[LedgerMutator] = None
        self.active_tab = Tab.DASHBOARD
        self.advice = ""
        self.session.add_listener(self._on_identity_changed)

    @property
    def offline_mode(self) -> bool:
        return self.session.offline_mode

    @property
    def user(self) -> Optional[UserProfile]:
        return self.session.current_user

    @property
    def accounts(self):
        return self.mirror.accounts if self.mirror else []

    @property
    def transactions(self):
        return self.mirror.transactions if self.mirror else []

    @property
    def total_balance(self):
        return self.mirror.total_balance if self.mirror else Decimal("0")

    def select_tab(self, tab: Tab) -> None:
        self.active_tab = Tab(tab)

    async def sign_in(self, email: str, password: str) -> UserProfile:
        user = await self.session.sign_in(email, password)
        await self._open(user)
        return user

    async def sign_up(self, email: str, password: str) -> UserProfile:
        user = await self.session.sign_up(email, password)
        await self._open(user)
        return user

    async def sign_out(self) -> None:
        self.session.sign_out()
        await self.session.close()

    async def _open(self, user: UserProfile) -> None:
        self._close()
        store = self._store_factory(user)
        mirror = LiveCollectionMirror(store, user.uid)
        await mirror.start()
        self.mirror = mirror
        self.ledger = LedgerMutator(store, mirror, offline_mode=self.offline_mode)
        self.active_tab = Tab.DASHBOARD
        logger.info("app.session_opened", uid=user.uid, offline=self.offline_mode)

    def _close(self) -> None:
        if self.mirror is not None:
            self.mirror.close()
        self.mirror = None
        self.ledger = None
        self.advice = ""

    def _on_identity_changed(self, user: Optional[UserProfile]) -> None:
        if user is None:
            self._close()

    async def request_advice(self) -> str:
        """Fetch advice for the mirrored data; inert with no transactions."""
        transactions = self.transactions
        if not can_request_advice(transactions):
            return self.advice
        self.advice = await self.advisor.get_financial_advice(
            transactions,
            self.accounts,
            DEFAULT_CATEGORIES,
        )
        return self.advice


def create_app_state(settings: Optional[Settings] = None) -> AppState:
    """
    Factory function to wire the application for one UI session.

    Without usable backend credentials the app runs in demo mode: no
    identity service, and a fresh in-memory demo store per sign-in.
    """
    settings = settings or get_settings()
    advisor = AdviceRequester(settings.gemini, settings.app.recent_transactions_for_advice)

    if settings.offline_mode:
        logger.warning("app.offline_mode", reason="backend credentials not configured")
        session = SessionManager(identity=None, offline_mode=True)
        return AppState(session, lambda user: create_demo_store(user.uid), advisor)

    config = settings.backend.config
    session = SessionManager(identity=FirebaseIdentityClient(api_key=config.api_key))
    store = GoogleSheetsDocumentStore(
        GoogleSheetsClient(config),
        poll_interval_seconds=config.poll_interval_seconds,
    )
    return AppState(session, lambda user: store, advisor)
