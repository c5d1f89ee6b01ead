"""Facade the UI talks to.

Every mutating call reads the current record from the repository, checks
its preconditions against that copy, computes the next state with the pure
functions in ``allocation``, ``engine``, ``wallet`` and ``rewards`` and writes
the whole record back.
"""

import logging
import math
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, List, Mapping, NamedTuple, Optional

from budgetflow import rewards
from budgetflow import wallet as wallet_ops
from budgetflow.allocation import derive_wallet_allocation
from budgetflow.decisions import AdmissionDecision
from budgetflow.domain import (
    DailyHabits, FinancialProfile, Transaction, TransactionCandidate, UserProfile, WalletState,
)
from budgetflow.engine import TransactionAdmissionEngine
from budgetflow.errors import ValidationError
from budgetflow.events import (
    BUDGET_LOCK_CHANGED, BUFFER_USED, TRANSACTION_ADMITTED, EventBus, event_bus,
)
from budgetflow.repository import WalletRepository
from budgetflow.rewards import DailyResetPolicy, NoSettlement, SettlementPolicy

logger = logging.getLogger(__name__)

# onboarding steps, in order
STEP_LOGIN = "login"
STEP_SETUP = "setup"
STEP_DAILY_HABITS = "daily_habits"
STEP_DASHBOARD = "dashboard"

_PROFILE_FIELDS = {"name", "email", "age", "contact"}
_FINANCE_FIELDS = {"income", "budget_amount", "wallet_balance"}


def _is_amount(value) -> bool:
    return value is not None and math.isfinite(value) and value >= 0


class AdmissionOutcome(NamedTuple):
    wallet: WalletState
    transaction: Transaction
    notices: List[dict]


class BudgetFlowService:

    def __init__(
        self,
        repository: WalletRepository,
        engine: Optional[TransactionAdmissionEngine] = None,
        bus: Optional[EventBus] = None,
        reset_policy: Optional[DailyResetPolicy] = None,
        settlement: Optional[SettlementPolicy] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository
        self.engine = engine or TransactionAdmissionEngine(clock=clock, reset_policy=reset_policy)
        self.bus = bus or event_bus
        # the engine caps buffer use per reset period, so both share one policy
        self.reset_policy = reset_policy or self.engine.reset_policy
        self.engine.reset_policy = self.reset_policy
        self.settlement = settlement or NoSettlement()
        self.clock = clock

    # --- onboarding

    def sign_up(self, name: str, email: str, age: str = "", contact: str = "") -> UserProfile:
        if not (name or "").strip():
            raise ValidationError("Name is required", field="name")
        if not (email or "").strip():
            raise ValidationError("Email is required", field="email")
        user = UserProfile(name=name.strip(), email=email.strip(), age=str(age or ""),
                           contact=contact or "", is_logged_in=True, setup_complete=False)
        self.repository.save_user(user)
        logger.info("Signed up %s", user.email)
        return user

    def log_in(self, email: str) -> UserProfile:
        """Mocked login: any email is accepted."""
        if not (email or "").strip():
            raise ValidationError("Email is required", field="email")
        email = email.strip()
        existing = self.repository.load_user().get_or_else(None)
        if existing is not None and existing.email == email:
            user = replace(existing, is_logged_in=True)
        else:
            user = UserProfile(name="Demo User", email=email, is_logged_in=True)
        self.repository.save_user(user)
        return user

    def log_out(self) -> None:
        user = self.repository.load_user().get_or_else(None)
        if user is not None:
            self.repository.save_user(replace(user, is_logged_in=False))

    def setup_finances(self, income: float, budget_amount: float) -> FinancialProfile:
        user = self.repository.require_user()
        for field_name, value in (("income", income), ("budget_amount", budget_amount)):
            if not _is_amount(value):
                raise ValidationError(f"{field_name} must be zero or more", field=field_name)

        finances = FinancialProfile(income=float(income), budget_amount=float(budget_amount),
                                    wallet_balance=float(budget_amount))
        self.repository.save_finances(finances)
        self.repository.save_user(replace(user, setup_complete=True))
        return finances

    def submit_daily_habits(self, habits: DailyHabits) -> WalletState:
        finances = self.repository.require_finances()
        wallet = derive_wallet_allocation(habits, finances.budget_amount, self.engine.settings)
        self.repository.save_wallet(wallet)
        self.repository.save_finances(
            replace(finances, daily_habits_set=True, daily_budget=float(habits.daily_spend))
        )
        return wallet

    def next_step(self) -> str:
        user = self.repository.load_user().get_or_else(None)
        if user is None or not user.is_logged_in:
            return STEP_LOGIN
        finances = self.repository.load_finances().get_or_else(None)
        if not user.setup_complete or finances is None:
            return STEP_SETUP
        if not finances.daily_habits_set or self.repository.load_wallet().is_none():
            return STEP_DAILY_HABITS
        return STEP_DASHBOARD

    # --- wallet

    def current_wallet(self) -> WalletState:
        now = self.clock()
        wallet = self.repository.require_wallet()
        updated = self.settlement.settle(wallet, now)
        updated = self.reset_policy.reset_if_new_day(updated, now)
        if updated is not wallet:
            self.repository.save_wallet(updated)
        return updated

    def buffer_period_start(self) -> Optional[date]:
        return self.reset_policy.period_start(self.clock())

    def evaluate_transaction(self, candidate: TransactionCandidate) -> AdmissionDecision:
        return self.engine.evaluate(self.current_wallet(), candidate)

    def add_transaction(
        self, candidate: TransactionCandidate, justification: Optional[str] = None
    ) -> AdmissionOutcome:
        wallet, t = self.engine.admit(self.current_wallet(), candidate, justification)
        self.repository.save_wallet(wallet)

        notices = self.bus.publish(TRANSACTION_ADMITTED, {
            "transaction_id": t.id,
            "amount": t.amount,
            "category": t.category,
            "total_spent": wallet_ops.total_spent(wallet),
            "usable_amount": wallet.usable_amount,
            "threshold": self.engine.threshold(wallet),
        })
        if t.used_buffer:
            notices += self.bus.publish(BUFFER_USED, {
                "transaction_id": t.id,
                "amount": t.amount,
                "category": t.category,
                "reason": t.buffer_reason,
            })
        return AdmissionOutcome(wallet, t, [n for n in notices if n])

    def set_budget_lock(self, locked: bool) -> WalletState:
        before = self.repository.require_wallet()
        wallet = rewards.set_lock(before, locked)
        if wallet is not before:
            self.repository.save_wallet(wallet)
            self.bus.publish(BUDGET_LOCK_CHANGED, {"locked": wallet.budget_locked})
        return wallet

    def toggle_budget_lock(self) -> WalletState:
        return self.set_budget_lock(not self.repository.require_wallet().budget_locked)

    def save_categories(self, limits: Mapping[str, float]) -> WalletState:
        seen = set()
        for name, limit in limits.items():
            key = (name or "").strip().lower()
            if not key:
                raise ValidationError("Category name cannot be empty", field="name")
            if key in seen:
                raise ValidationError(f"Category {name!r} is listed twice", field="name")
            seen.add(key)
            if not _is_amount(limit):
                raise ValidationError(f"Limit for {name} must be zero or more", field="limit")
        wallet = wallet_ops.replace_categories(self.repository.require_wallet(), limits)
        self.repository.save_wallet(wallet)
        return wallet

    def add_category(self, name: str, limit: float) -> WalletState:
        wallet = wallet_ops.add_category(self.repository.require_wallet(), name, limit)
        self.repository.save_wallet(wallet)
        return wallet

    def remove_category(self, name: str) -> WalletState:
        wallet = wallet_ops.remove_category(self.repository.require_wallet(), name)
        self.repository.save_wallet(wallet)
        return wallet

    # --- profile page

    def update_profile(self, **changes) -> UserProfile:
        unknown = set(changes) - _PROFILE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown profile fields: {sorted(unknown)}")
        user = replace(self.repository.require_user(), **changes)
        if not user.email.strip():
            raise ValidationError("Email is required", field="email")
        self.repository.save_user(user)
        return user

    def update_finances(self, **changes) -> FinancialProfile:
        unknown = set(changes) - _FINANCE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown finance fields: {sorted(unknown)}")
        for field_name, value in changes.items():
            if not _is_amount(value):
                raise ValidationError(f"{field_name} must be zero or more", field=field_name)
        finances = replace(self.repository.require_finances(),
                           **{k: float(v) for k, v in changes.items()})
        self.repository.save_finances(finances)
        return finances
