"""
Display helpers for the UI.

Anything here that returns HTML escapes user-entered text first, since
the result is rendered with unsafe_allow_html.
"""

import html
from decimal import Decimal

from fintrack.models.ledger import BankAccount


def money(value: Decimal) -> str:
    return f"${value:,.2f}"


def account_chip_html(account: BankAccount) -> str:
    """A colour dot followed by the account name, bank and balance."""
    return (
        f'<span class="account-chip" style="background:{html.escape(account.color)}"></span>'
        f"<strong>{html.escape(account.name)}</strong> "
        f"({html.escape(account.bank_name)}) · {money(account.balance)}"
    )
