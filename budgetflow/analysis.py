"""Read-only views over a wallet for the stats and rewards pages."""

import calendar
import logging
from collections import OrderedDict
from datetime import date
from typing import Iterator, Optional

from budgetflow.config import CURRENCY, WARNING_RATIO
from budgetflow.domain import CategoryLimit, WalletState
from budgetflow.wallet import buffer_spent, total_spent

__all__ = ['total_spent', 'buffer_spent', 'savings_rate', 'category_percentages',
           'top_categories', 'iter_top_categories', 'monthly_aggregate',
           'investment_suggestion', 'spending_percentage', 'buffer_percentage',
           'progress_level']

logger = logging.getLogger(__name__)

MONTHS = tuple(calendar.month_abbr[m] for m in range(1, 13))


def savings_rate(wallet: WalletState) -> float:
    total_budget = wallet.usable_amount + wallet.buffer
    if total_budget <= 0:
        return 0.0
    return wallet.savings / total_budget * 100


def category_percentages(wallet: WalletState) -> dict[str, float]:
    total = total_spent(wallet)
    if total <= 0:
        return {c.name: 0.0 for c in wallet.categories}
    return {c.name: c.spent / total * 100 for c in wallet.categories}


def iter_top_categories(wallet: WalletState) -> Iterator[CategoryLimit]:
    yield from sorted(wallet.categories, key=lambda c: (-c.spent, c.name))


def top_categories(wallet: WalletState, n: int) -> list[CategoryLimit]:
    return list(iter_top_categories(wallet))[: max(0, n)]


def monthly_aggregate(wallet: WalletState) -> "OrderedDict[str, float]":
    """Sum transaction amounts into Jan..Dec buckets, whatever the year."""
    months = OrderedDict((name, 0.0) for name in MONTHS)
    for t in wallet.transactions:
        when = t.occurred_at
        if when is None:
            logger.warning("Skipping transaction %s with unreadable timestamp %r", t.id, t.timestamp)
            continue
        months[MONTHS[when.month - 1]] += t.amount
    return months


def spending_percentage(wallet: WalletState) -> float:
    if wallet.usable_amount <= 0:
        return 0.0
    return min(100.0, total_spent(wallet) / wallet.usable_amount * 100)


def buffer_percentage(wallet: WalletState, since: Optional[date] = None) -> float:
    if wallet.buffer <= 0:
        return 0.0
    return min(100.0, buffer_spent(wallet, since) / wallet.buffer * 100)


def progress_level(spent: float, limit: float) -> str:
    if limit <= 0:
        return "danger" if spent > 0 else "ok"
    pct = spent / limit * 100
    if pct < 50:
        return "ok"
    if pct < WARNING_RATIO * 100:
        return "warning"
    return "danger"


def investment_suggestion(wallet: WalletState) -> str:
    savings = wallet.savings
    ranked = top_categories(wallet, 1)
    highest = ranked[0].name if ranked else "unknown"
    share = category_percentages(wallet).get(highest, 0.0)

    if savings > wallet.usable_amount * 3:
        return (
            f"You have a healthy savings of {CURRENCY}{savings:.2f}. Consider investing 30% in a "
            f"mix of mutual funds and fixed deposits for long-term growth. Your highest expense "
            f"category is {highest}, which accounts for {share:.2f}% of your spending."
        )
    if savings > wallet.usable_amount:
        return (
            f"You have saved {CURRENCY}{savings:.2f}. Consider starting with a small investment "
            f"in a liquid fund while building your emergency fund. Focus on reducing expenses "
            f"in {highest} to increase your savings rate."
        )
    return (
        f"Your current savings of {CURRENCY}{savings:.2f} are below optimal levels. Focus on "
        f"building an emergency fund of at least 3 months of expenses before investing. "
        f"Consider reducing spending in {highest} which is your highest expense category."
    )
