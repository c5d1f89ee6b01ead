"""Budget lock, reward points and the end-of-day hooks.

Spending is never reset and savings never accrue unless a policy says so.
``NeverReset`` and ``NoSettlement`` keep the wallet as it is; ``ResetOnNewDay``
is available for callers that want category spend to start over each day.
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Optional, Protocol

from budgetflow.domain import WalletState

logger = logging.getLogger(__name__)


def set_lock(wallet: WalletState, locked: bool) -> WalletState:
    if wallet.budget_locked == locked:
        return wallet
    logger.info("Budget %s", "locked" if locked else "unlocked")
    return replace(wallet, budget_locked=locked)


def toggle_lock(wallet: WalletState) -> WalletState:
    return set_lock(wallet, not wallet.budget_locked)


def accrue_daily_reward(wallet: WalletState) -> WalletState:
    # reward rules for under-budget days are not defined yet
    return wallet


class DailyResetPolicy(Protocol):
    def reset_if_new_day(self, wallet: WalletState, now: datetime) -> WalletState:
        ...

    def period_start(self, now: datetime) -> Optional[date]:
        """First day of the current spending period, None when it never restarts."""
        ...


class NeverReset:
    def reset_if_new_day(self, wallet: WalletState, now: datetime) -> WalletState:
        return wallet

    def period_start(self, now: datetime) -> Optional[date]:
        return None


class ResetOnNewDay:
    """Zero every category's spend once the newest transaction is from an earlier day."""

    def reset_if_new_day(self, wallet: WalletState, now: datetime) -> WalletState:
        if not wallet.transactions:
            return wallet
        newest = wallet.transactions[0]
        if newest.occurred_at is None:
            logger.warning("Not resetting: last transaction %s has unreadable timestamp %r",
                           newest.id, newest.timestamp)
            return wallet
        last_day = newest.occurred_at.date()
        if last_day >= now.date() or all(c.spent == 0 for c in wallet.categories):
            return wallet
        logger.info("New day %s, resetting category spend (last activity %s)", now.date(), last_day)
        return replace(wallet, categories=tuple(replace(c, spent=0.0) for c in wallet.categories))

    def period_start(self, now: datetime) -> Optional[date]:
        return now.date()


class SettlementPolicy(Protocol):
    def settle(self, wallet: WalletState, now: datetime) -> WalletState:
        ...


class NoSettlement:
    def settle(self, wallet: WalletState, now: datetime) -> WalletState:
        return wallet
