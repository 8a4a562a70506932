"""
Streamlit Frontend for FinTrack

The screens a signed-in user works with every day: a dashboard, their
accounts, their transactions and the reports.

DESIGN PRINCIPLES:
1. Every figure is derived from the live mirror on each render
2. Every write goes through the ledger, never straight to the store
3. Clear error messages in simple language
4. Demo mode is always visible and never pretends to save

One AppState lives in st.session_state per browser session. Views read
from it and call its ledger; nothing else is shared between pages.
"""

import asyncio
from datetime import date, datetime

import pandas as pd
import plotly.express as px
import streamlit as st

from fintrack.config import configure_logging, get_settings, validate_all_settings
from fintrack.ledger import LedgerError, OfflineModeError
from fintrack.models import DEFAULT_CATEGORIES, TransactionType, find_category
from fintrack.orchestrator import AppState, Tab, create_app_state
from fintrack.agents import can_request_advice
from fintrack.reports import (
    account_chip_html,
    category_breakdown,
    category_lookup,
    last_7_days,
    money,
    month_summary,
    recent_transactions,
)
from fintrack.services.identity import IdentityError
from fintrack.validation import FormValidator, parse_amount


# Page configuration
st.set_page_config(
    page_title="FinTrack",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .demo-box {
        padding: 12px 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
    .account-chip {
        display: inline-block;
        width: 12px;
        height: 12px;
        border-radius: 6px;
        margin-right: 8px;
    }
</style>
""", unsafe_allow_html=True)

TAB_LABELS = {
    Tab.DASHBOARD: "🏠 Dashboard",
    Tab.ACCOUNTS: "🏦 Accounts",
    Tab.TRANSACTIONS: "💸 Transactions",
    Tab.REPORTS: "📊 Reports",
}
SETTINGS_LABEL = "⚙️ Settings"


def run_async(coro):
    """
    Helper to run async functions in Streamlit.

    The loop is kept per browser session so the HTTP and Gemini clients
    created inside it stay usable across reruns.
    """
    loop = st.session_state.get("event_loop")
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        st.session_state.event_loop = loop
    asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


def get_app_state() -> AppState:
    """Get or create this browser session's application state."""
    if "app_state" not in st.session_state:
        settings = get_settings()
        configure_logging(settings.app.effective_log_level, settings.app.log_format)
        st.session_state.app_state = create_app_state(settings)
    return st.session_state.app_state


def save(operation) -> bool:
    """Run a ledger coroutine and show the outcome. Returns True on success."""
    try:
        run_async(operation)
        return True
    except OfflineModeError as e:
        st.warning(f"🔒 {e}")
    except LedgerError as e:
        st.error(f"❌ {e}")
    return False


def main():
    """Main application entry point."""
    state = get_app_state()

    if not state.session.is_authenticated:
        render_auth_page(state)
        return

    # Sidebar navigation
    st.sidebar.title("💰 FinTrack")
    st.sidebar.markdown(f"Signed in as **{state.user.display_name or state.user.email}**")
    if state.offline_mode:
        st.sidebar.warning("Demo mode: changes are not saved")
    st.sidebar.markdown("---")

    labels = list(TAB_LABELS.values()) + [SETTINGS_LABEL]
    current = TAB_LABELS[state.active_tab]
    page = st.sidebar.radio(
        "Navigate to:",
        labels,
        index=labels.index(current),
    )
    for tab, label in TAB_LABELS.items():
        if label == page:
            state.select_tab(tab)

    st.sidebar.markdown("---")
    if st.sidebar.button("🚪 Log out"):
        run_async(state.sign_out())
        st.rerun()

    # Messages left for this run by the previous one
    flash = st.session_state.pop("flash", None)
    if flash:
        st.info(flash)

    # Route to appropriate page
    if page == SETTINGS_LABEL:
        render_settings_page()
    elif state.active_tab == Tab.DASHBOARD:
        render_dashboard_page(state)
    elif state.active_tab == Tab.ACCOUNTS:
        render_accounts_page(state)
    elif state.active_tab == Tab.TRANSACTIONS:
        render_transactions_page(state)
    elif state.active_tab == Tab.REPORTS:
        render_reports_page(state)


def render_auth_page(state: AppState):
    """Render the login / signup page."""
    st.title("💰 FinTrack")

    if state.offline_mode:
        st.markdown("""
        <div class="demo-box">
            <strong>Demo mode.</strong> No backend is configured, so any
            email and password opens a demo account with sample data.
            Nothing you do here is saved.
        </div>
        """, unsafe_allow_html=True)

    if "auth_mode" not in st.session_state:
        st.session_state.auth_mode = "login"
    signing_up = st.session_state.auth_mode == "signup"

    st.markdown("### " + ("Create an account" if signing_up else "Log in"))

    with st.form("auth_form"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button(
            "Sign up" if signing_up else "Log in",
            type="primary",
        )

    if submitted:
        with st.spinner("Signing in..."):
            try:
                if signing_up:
                    run_async(state.sign_up(email, password))
                else:
                    run_async(state.sign_in(email, password))
                st.rerun()
            except IdentityError as e:
                st.error(f"❌ {e}")

    toggle_label = (
        "Already have an account? Log in" if signing_up
        else "No account yet? Sign up"
    )
    if st.button(toggle_label):
        st.session_state.auth_mode = "login" if signing_up else "signup"
        st.rerun()


def render_dashboard_page(state: AppState):
    """Render the dashboard."""
    st.title("🏠 Dashboard")

    summary = month_summary(state.transactions)

    col1, col2, col3 = st.columns(3)
    with col1:
        st.markdown("**Total balance**")
        st.markdown(
            f'<div class="big-number">{money(state.total_balance)}</div>',
            unsafe_allow_html=True,
        )
    with col2:
        st.metric(f"Income ({summary.month})", money(summary.income))
    with col3:
        st.metric(f"Expense ({summary.month})", money(summary.expense))

    # AI advice
    st.markdown("### 🤖 Financial advice")
    has_transactions = can_request_advice(state.transactions)
    if st.button("Ask for advice", disabled=not has_transactions):
        with st.spinner("Thinking about your finances..."):
            run_async(state.request_advice())
    if not has_transactions:
        st.caption("Add a transaction first to get advice.")
    if state.advice:
        st.info(state.advice, icon="🤖")

    st.markdown("---")
    left, right = st.columns(2)

    with left:
        st.markdown("### Recent transactions")
        recent = recent_transactions(state.transactions)
        if not recent:
            st.info("No transactions yet.")
        for txn in recent:
            sign = "+" if txn.type == TransactionType.INCOME else "-"
            st.markdown(
                f"{txn.date.isoformat()} · **{txn.category.name}** · "
                f"{txn.note or '-'} · `{sign}{money(txn.amount)}`"
            )

    with right:
        st.markdown("### Accounts")
        if not state.accounts:
            st.info("No accounts yet.")
        for account in state.accounts:
            st.markdown(account_chip_html(account), unsafe_allow_html=True)


def render_accounts_page(state: AppState):
    """Render the accounts page: add, edit, delete."""
    st.title("🏦 Accounts")
    validator = FormValidator()

    with st.expander("➕ Add account", expanded=not state.accounts):
        with st.form("add_account", clear_on_submit=True):
            name = st.text_input("Account name")
            bank_name = st.text_input("Bank name")
            balance = st.text_input("Opening balance", value="0")
            submitted = st.form_submit_button("Save account", type="primary")

        if submitted:
            result = validator.validate_account(name, bank_name, balance)
            if result.has_errors:
                st.error(validator.get_user_friendly_summary(result))
            elif save(state.ledger.create_account(
                name.strip(), bank_name.strip(), parse_amount(balance)
            )):
                st.success("✅ Account saved")
                st.rerun()

    st.markdown("---")

    if not state.accounts:
        st.info("🏦 Your accounts will appear here once you add one.")
        return

    for account in state.accounts:
        with st.expander(f"{account.name} · {account.bank_name} · {money(account.balance)}"):
            with st.form(f"edit_{account.id}"):
                name = st.text_input("Account name", value=account.name)
                bank_name = st.text_input("Bank name", value=account.bank_name)
                balance = st.text_input("Balance", value=str(account.balance))
                updated = st.form_submit_button("Update")

            if updated:
                result = validator.validate_account(name, bank_name, balance)
                if result.has_errors:
                    st.error(validator.get_user_friendly_summary(result))
                elif save(state.ledger.update_account(
                    account, name.strip(), bank_name.strip(), parse_amount(balance)
                )):
                    st.success("✅ Account updated")
                    st.rerun()

            confirm = st.checkbox(
                "I understand the account's transactions are kept",
                key=f"confirm_delete_{account.id}",
            )
            if st.button("🗑️ Delete account", key=f"delete_{account.id}", disabled=not confirm):
                if save(state.ledger.delete_account(account)):
                    st.rerun()


def render_transactions_page(state: AppState):
    """Render the transactions page: add, list, delete."""
    st.title("💸 Transactions")
    validator = FormValidator()

    if not state.accounts:
        st.info("Add an account first, then record transactions against it.")
    else:
        with st.expander("➕ Add transaction", expanded=True):
            with st.form("add_transaction", clear_on_submit=True):
                col1, col2 = st.columns(2)
                with col1:
                    txn_type = st.radio(
                        "Type",
                        options=list(TransactionType),
                        format_func=lambda t: t.value.title(),
                        horizontal=True,
                    )
                    amount = st.text_input("Amount")
                    account = st.selectbox(
                        "Account",
                        options=state.accounts,
                        format_func=lambda a: f"{a.name} ({money(a.balance)})",
                    )
                with col2:
                    category = st.selectbox(
                        "Category",
                        options=DEFAULT_CATEGORIES,
                        format_func=lambda c: c.name,
                    )
                    txn_date = st.date_input("Date", value=date.today())
                    note = st.text_input("Note")
                submitted = st.form_submit_button("Save transaction", type="primary")

            if submitted:
                result = validator.validate_transaction(
                    amount=amount,
                    account_id=account.id if account else None,
                    category_id=category.id if category else None,
                    txn_date=txn_date,
                    accounts=state.accounts,
                    note=note,
                )
                for warning in result.warnings:
                    st.warning(f"⚠️ {warning.message}")
                if result.has_errors:
                    st.error(validator.get_user_friendly_summary(result))
                elif save(state.ledger.create_transaction(
                    account_id=account.id,
                    amount=parse_amount(amount),
                    type=txn_type,
                    category_id=category.id,
                    note=note.strip(),
                    txn_date=txn_date,
                )):
                    st.success("✅ Transaction saved")
                    st.rerun()

    st.markdown("---")

    transactions = state.transactions
    if not transactions:
        st.info("💸 Your transactions will appear here once you add one.")
        return

    account_names = {a.id: a.name for a in state.accounts}
    df = pd.DataFrame([
        {
            "Date": t.date,
            "Type": t.type.value.title(),
            "Category": category_lookup(t.category_id).name,
            "Account": account_names.get(t.account_id, "Deleted account"),
            "Amount": float(t.signed_amount),
            "Note": t.note,
        }
        for t in transactions
    ])
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.markdown("### Delete a transaction")
    selected = st.selectbox(
        "Transaction",
        options=transactions,
        format_func=lambda t: (
            f"{t.date.isoformat()} · {t.category.name} · {t.note or '-'} · {money(t.signed_amount)}"
        ),
    )
    if st.button("🗑️ Delete transaction") and selected is not None:
        try:
            result = run_async(state.ledger.delete_transaction(selected))
        except OfflineModeError as e:
            st.warning(f"🔒 {e}")
        except LedgerError as e:
            st.error(f"❌ {e}")
        else:
            if not result.balance_adjusted:
                # Shown after the rerun below
                st.session_state.flash = "The account no longer exists, so no balance was changed."
            st.rerun()


def render_reports_page(state: AppState):
    """Render the reports page."""
    st.title("📊 Reports")

    col1, col2 = st.columns(2)

    with col1:
        st.markdown("### Expenses by category")
        slices = category_breakdown(state.transactions)
        if not slices:
            st.info("No expenses recorded yet.")
        else:
            df_cat = pd.DataFrame([
                {"Category": s.name, "Total": float(s.value)} for s in slices
            ])
            fig_cat = px.pie(
                df_cat,
                values="Total",
                names="Category",
                color="Category",
                color_discrete_map={s.name: s.color for s in slices},
                hole=0.4,
            )
            fig_cat.update_layout(height=350)
            st.plotly_chart(fig_cat, use_container_width=True)

    with col2:
        st.markdown("### Last 7 days")
        days = last_7_days(state.transactions)
        df_days = pd.DataFrame([
            {"Day": d.label, "Income": float(d.income), "Expense": float(d.expense)}
            for d in days
        ])
        fig_days = px.bar(
            df_days,
            x="Day",
            y=["Income", "Expense"],
            barmode="group",
            color_discrete_map={
                "Income": find_category("cat-3").color,
                "Expense": find_category("cat-1").color,
            },
            labels={"value": "Amount", "variable": ""},
        )
        fig_days.update_layout(height=350)
        st.plotly_chart(fig_days, use_container_width=True)

    st.caption(f"Updated {datetime.now().strftime('%H:%M:%S')}")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    settings = get_settings()
    status = validate_all_settings()

    services = [
        ("Identity & Google Sheets (Storage)", "backend"),
        ("Gemini (AI advice)", "gemini"),
        ("Application settings", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Connected")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown(f"Environment: `{settings.app.app_environment}`")
    if settings.backend.config.project_id:
        st.markdown(f"Project: `{settings.backend.config.project_id}`")
    if settings.app.debug_mode:
        st.caption("Debug mode is on: logging at DEBUG.")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
