import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from budgetflow import analysis, config
from budgetflow.config import DEFAULT_HABIT_CATEGORIES, EngineSettings
from budgetflow.domain import DailyHabits, TransactionCandidate
from budgetflow.engine import TransactionAdmissionEngine
from budgetflow.errors import BudgetFlowError, JustificationRequired, NotFound
from budgetflow.filters import (
    buffered_only, by_category, by_month, filter_transactions, matches_query, transaction_categories,
)
from budgetflow.repository import JsonFileStore, WalletRepository
from budgetflow.services import (
    STEP_DAILY_HABITS, STEP_LOGIN, STEP_SETUP, BudgetFlowService,
)
from budgetflow.wallet import total_spent

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Budget Smart Flow", layout="wide")

CUR = config.CURRENCY


@st.cache_resource
def get_service() -> BudgetFlowService:
    repo = WalletRepository(JsonFileStore(config.ensure_data_directory()))
    engine = TransactionAdmissionEngine(settings=EngineSettings.from_env())
    return BudgetFlowService(repo, engine)


service = get_service()


def money(x: float) -> str:
    return f"{CUR}{x:,.2f}"


def tx_to_df(transactions) -> pd.DataFrame:
    rows = [{
        "date": pd.to_datetime(t.timestamp, errors="coerce"),
        "amount": t.amount,
        "category": t.category,
        "description": t.description,
        "recipient": t.recipient,
        "buffer": "yes" if t.used_buffer else "",
        "reason": t.buffer_reason or "",
    } for t in transactions]
    return pd.DataFrame(rows, columns=["date", "amount", "category", "description",
                                       "recipient", "buffer", "reason"])


def categories_df(wallet) -> pd.DataFrame:
    df = pd.DataFrame(
        [{"category": c.name, "limit": c.limit, "spent": c.spent} for c in wallet.categories]
    )
    if df.empty:
        return df
    spent = df["spent"].to_numpy(dtype=float)
    limit = df["limit"].to_numpy(dtype=float)
    df["used %"] = np.clip(
        np.divide(spent, limit, out=np.zeros(len(df)), where=limit > 0) * 100, 0, 100
    )
    return df


# ---------------- onboarding

step = service.next_step()

if step == STEP_LOGIN:
    st.title("💰 Budget Smart Flow")
    tab_login, tab_signup = st.tabs(["Login", "Sign up"])
    with tab_login:
        with st.form("login"):
            email = st.text_input("Email")
            st.text_input("Password", type="password")
            if st.form_submit_button("Login"):
                try:
                    service.log_in(email)
                    st.rerun()
                except BudgetFlowError as e:
                    st.error(str(e))
    with tab_signup:
        with st.form("signup"):
            name = st.text_input("Name")
            email = st.text_input("Email", key="signup_email")
            age = st.text_input("Age")
            contact = st.text_input("Contact")
            st.text_input("Password", type="password", key="signup_password")
            if st.form_submit_button("Create account"):
                try:
                    service.sign_up(name, email, age, contact)
                    st.rerun()
                except BudgetFlowError as e:
                    st.error(str(e))
    st.stop()

if step == STEP_SETUP:
    st.title("Financial Setup")
    with st.form("setup"):
        income = st.number_input("Monthly Income", min_value=0.0, step=100.0)
        budget = st.number_input("Monthly Budget", min_value=0.0, step=100.0)
        if st.form_submit_button("Continue"):
            try:
                service.setup_finances(income, budget)
                st.rerun()
            except BudgetFlowError as e:
                st.error(str(e))
    st.stop()

if step == STEP_DAILY_HABITS:
    st.title("Daily Spending Habits")
    st.caption("Enter your usual daily spending so we can set up your budget categories.")
    with st.form("habits"):
        daily = st.number_input("Total Daily Spending", min_value=0.0, value=50.0, step=1.0)
        cols = st.columns(2)
        declared = {}
        for i, name in enumerate(DEFAULT_HABIT_CATEGORIES):
            with cols[i % 2]:
                declared[name] = st.number_input(name.capitalize(), min_value=0.0, step=1.0, key=f"habit_{name}")
        if st.form_submit_button("Continue to Wallet"):
            try:
                service.submit_daily_habits(DailyHabits(daily_spend=daily, categories=declared))
                st.rerun()
            except BudgetFlowError as e:
                st.error(str(e))
    st.stop()

try:
    wallet = service.current_wallet()
except NotFound:
    st.warning("No wallet found, please set up your daily habits again.")
    st.stop()

user = service.repository.require_user()

st.sidebar.markdown(f"### 👤 {user.name or 'User'}")
if wallet.budget_locked:
    st.sidebar.error("🔒 Budget locked")
if st.sidebar.button("Log out"):
    service.log_out()
    st.rerun()

menu = st.sidebar.radio(
    "Menu",
    ["🏠 Dashboard", "➕ Add Transaction", "🧾 Transactions", "📊 Stats", "🏆 Rewards", "👤 Profile"]
)

if menu == "🏠 Dashboard":
    st.title(f"Hello, {user.name or 'User'}!")
    spent = total_spent(wallet)
    since = service.buffer_period_start()
    k1, k2, k3, k4 = st.columns(4)
    with k1:
        st.metric("Usable Today", money(wallet.usable_amount))
    with k2:
        st.metric("Spent", money(spent), f"{analysis.spending_percentage(wallet):.0f}% used", delta_color="inverse")
    with k3:
        st.metric("Buffer", money(wallet.buffer))
    with k4:
        st.metric("Buffer Used", money(analysis.buffer_spent(wallet, since)))

    st.progress(analysis.spending_percentage(wallet) / 100, text="Daily usable amount")
    st.progress(analysis.buffer_percentage(wallet, since) / 100, text="Buffer")

    st.subheader("Categories")
    for c in wallet.categories:
        level = analysis.progress_level(c.spent, c.limit)
        icon = {"ok": "🟢", "warning": "🟡", "danger": "🔴"}[level]
        st.markdown(f"{icon} **{c.name}** {money(c.spent)} / {money(c.limit)}")
        st.progress(min(1.0, c.spent / c.limit) if c.limit > 0 else 0.0)

    st.subheader("Recent Transactions")
    recent = tx_to_df(wallet.transactions[:5])
    if recent.empty:
        st.info("No transactions yet.")
    else:
        st.table(recent.assign(amount=recent["amount"].map(money)))

elif menu == "➕ Add Transaction":
    st.title("Add Transaction")
    if wallet.budget_locked:
        st.error("Your budget is locked. Unlock it on the Stats page to add transactions.")
        st.stop()

    flash = st.session_state.pop("flash", None)
    if flash:
        st.success(flash)

    pending = st.session_state.get("pending_candidate")

    with st.form("add_tx"):
        amount = st.number_input(f"Amount ({CUR})", min_value=0.0, step=0.5, format="%.2f")
        category = st.selectbox(
            "Category",
            options=wallet.category_names,
            format_func=lambda n: next(
                f"{c.name} ({money(c.spent)}/{money(c.limit)})" for c in wallet.categories if c.name == n
            ),
        )
        description = st.text_input("Description", placeholder="What did you purchase?")
        recipient = st.text_input("Recipient", placeholder="Where did you spend this money?")
        submitted = st.form_submit_button("Save Transaction")

    if submitted:
        candidate = TransactionCandidate(amount, category, description, recipient)
        try:
            decision = service.evaluate_transaction(candidate)
            if decision.is_allowed():
                outcome = service.add_transaction(candidate)
                st.success(f"{money(outcome.transaction.amount)} has been recorded in your {category} category.")
                for n in outcome.notices:
                    if "alert" in n:
                        st.warning(n["alert"])
            elif decision.requires_justification():
                st.session_state["pending_candidate"] = candidate
                st.session_state["pending_reason"] = decision.fold(
                    lambda: "", lambda reason: reason, lambda reason: reason
                )
                st.rerun()
            else:
                st.error(decision.fold(lambda: "", lambda r: r, lambda r: f"Transaction rejected: {r}"))
        except BudgetFlowError as e:
            st.error(str(e))

    if pending is not None:
        reason = st.session_state.get("pending_reason")
        if reason == "category_limit":
            st.warning("This transaction exceeds your category limit.")
        else:
            st.warning("You've reached 80% of your daily budget.")
        with st.form("buffer"):
            st.write(f"Use your buffer for {money(pending.amount)} in {pending.category}?")
            justification = st.text_area("Reason for using buffer *")
            use, cancel = st.columns(2)
            confirm = use.form_submit_button("Use Buffer")
            dismiss = cancel.form_submit_button("Cancel Transaction")
        if confirm:
            try:
                outcome = service.add_transaction(pending, justification)
                st.session_state.pop("pending_candidate", None)
                st.session_state["flash"] = f"{money(outcome.transaction.amount)} recorded using your buffer."
                st.rerun()
            except JustificationRequired:
                st.error("Please explain why you need to use the buffer funds.")
            except BudgetFlowError as e:
                st.session_state.pop("pending_candidate", None)
                st.error(str(e))
        elif dismiss:
            st.session_state.pop("pending_candidate", None)
            st.rerun()

elif menu == "🧾 Transactions":
    st.title("🧾 Transactions")
    col1, col2, col3 = st.columns([3, 1, 1])
    with col1:
        query = st.text_input("Search description or recipient")
    with col2:
        cats = ("All",) + transaction_categories(wallet.transactions)
        selected = st.selectbox("Category", cats)
    with col3:
        months = sorted({t.occurred_at.strftime("%Y-%m") for t in wallet.transactions
                         if t.occurred_at is not None}, reverse=True)
        month = st.selectbox("Month", ["All"] + months)
    only_buffer = st.checkbox("Only buffer transactions")

    preds = [matches_query(query)]
    if selected != "All":
        preds.append(by_category(selected))
    if month != "All":
        preds.append(by_month(month))
    if only_buffer:
        preds.append(buffered_only)
    df = tx_to_df(filter_transactions(wallet.transactions, *preds))

    if df.empty:
        st.info("No transactions match the selected filters")
    else:
        st.dataframe(df, use_container_width=True)
        st.download_button("⬇️ Download CSV", df.to_csv(index=False),
                           file_name="transactions.csv", mime="text/csv")

elif menu == "📊 Stats":
    st.title("📊 Stats")
    locked = st.toggle("Budget Locked", value=wallet.budget_locked)
    if locked != wallet.budget_locked:
        wallet = service.toggle_budget_lock()
        st.toast("Budget Locked" if locked else "Budget Unlocked")

    c1, c2 = st.columns(2)
    with c1:
        st.metric("Reward Points", wallet.rewards)
    with c2:
        st.metric("Budget Used", f"{analysis.spending_percentage(wallet):.0f}%")

    df_cat = categories_df(wallet)
    if not df_cat.empty:
        fig = go.Figure()
        fig.add_trace(go.Bar(x=df_cat["category"], y=df_cat["limit"], name="Limit"))
        fig.add_trace(go.Bar(x=df_cat["category"], y=df_cat["spent"], name="Spent"))
        fig.update_layout(barmode="group", template="plotly_dark", margin=dict(t=30, b=10, l=10, r=10))
        st.plotly_chart(fig, use_container_width=True)
        st.dataframe(df_cat, use_container_width=True)

    with st.expander("Edit categories"):
        edited = st.data_editor(
            pd.DataFrame([{"category": c.name, "limit": c.limit} for c in wallet.categories],
                         columns=["category", "limit"]),
            num_rows="dynamic", use_container_width=True, key="category_limits",
        )
        if st.button("Save limits"):
            try:
                limits = {
                    str(row.category).strip(): float(row.limit)
                    for row in edited.itertuples(index=False)
                    if pd.notna(row.category) and str(row.category).strip()
                }
                service.save_categories(limits)
                st.rerun()
            except (BudgetFlowError, TypeError, ValueError) as e:
                st.error(str(e))

        with st.form("add_category"):
            new_name = st.text_input("New category")
            new_limit = st.number_input("Limit", min_value=0.0, step=1.0)
            if st.form_submit_button("Add"):
                try:
                    service.add_category(new_name, new_limit)
                    st.rerun()
                except BudgetFlowError as e:
                    st.error(str(e))
        removable = st.selectbox("Remove category", wallet.category_names)
        if st.button("Remove"):
            try:
                service.remove_category(removable)
                st.rerun()
            except BudgetFlowError as e:
                st.error(str(e))

elif menu == "🏆 Rewards":
    st.title("🏆 Rewards & Insights")
    k1, k2 = st.columns(2)
    with k1:
        st.metric("Savings", money(wallet.savings))
    with k2:
        st.metric("Savings Rate", f"{analysis.savings_rate(wallet):.1f}%")

    monthly = analysis.monthly_aggregate(wallet)
    fig_m = px.bar(x=list(monthly.keys()), y=list(monthly.values()),
                   labels={"x": "Month", "y": f"Spent ({CUR})"},
                   title="Monthly Expenses", template="plotly_dark")
    st.plotly_chart(fig_m, use_container_width=True)

    spent_by_cat = pd.DataFrame(
        [{"category": c.name, "spent": c.spent} for c in wallet.categories if c.spent > 0]
    )
    if not spent_by_cat.empty:
        fig_p = px.pie(spent_by_cat, values="spent", names="category", title="Category Distribution")
        st.plotly_chart(fig_p, use_container_width=True)

    st.subheader("Top Expenses")
    top = analysis.top_categories(wallet, 3)
    shares = analysis.category_percentages(wallet)
    for c in top:
        st.markdown(f"**{c.name}**: {money(c.spent)} ({shares[c.name]:.1f}%)")

    st.subheader("Investment Suggestion")
    st.info(analysis.investment_suggestion(wallet))

elif menu == "👤 Profile":
    st.title("👤 Profile")
    finances = service.repository.require_finances()
    with st.form("profile"):
        name = st.text_input("Name", value=user.name)
        email = st.text_input("Email", value=user.email)
        age = st.text_input("Age", value=user.age)
        contact = st.text_input("Contact", value=user.contact)
        income = st.number_input("Monthly Income", min_value=0.0, value=finances.income)
        budget = st.number_input("Monthly Budget", min_value=0.0, value=finances.budget_amount)
        if st.form_submit_button("Save"):
            try:
                service.update_profile(name=name, email=email, age=age, contact=contact)
                service.update_finances(income=income, budget_amount=budget)
                st.success("Profile updated")
            except BudgetFlowError as e:
                st.error(str(e))
    if finances.daily_budget is not None:
        st.caption(f"Daily budget: {money(finances.daily_budget)}")
