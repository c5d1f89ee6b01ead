import math
from dataclasses import replace
from datetime import date
from functools import reduce
from typing import Mapping, Optional

from budgetflow.domain import CategoryLimit, Transaction, WalletState
from budgetflow.errors import ValidationError
from budgetflow.functional import Maybe, Nothing, Some


def find_category(wallet: WalletState, name: str) -> Maybe[CategoryLimit]:
    for cat in wallet.categories:
        if cat.name == name:
            return Some(cat)
    return Nothing()


def total_spent(wallet: WalletState) -> float:
    return reduce(lambda acc, c: acc + c.spent, wallet.categories, 0.0)


def total_limit(wallet: WalletState) -> float:
    return sum(c.limit for c in wallet.categories)


def record_transaction(wallet: WalletState, t: Transaction) -> WalletState:
    """Prepend ``t`` and charge its amount to the category it names."""
    if find_category(wallet, t.category).is_none():
        raise ValidationError(f"Unknown category {t.category!r}", field="category")
    categories = tuple(
        replace(c, spent=c.spent + t.amount) if c.name == t.category else c
        for c in wallet.categories
    )
    return replace(wallet, categories=categories, transactions=(t,) + wallet.transactions)


def replace_categories(wallet: WalletState, limits: Mapping[str, float]) -> WalletState:
    """Swap in a new set of category limits.

    Categories that survive keep what was already spent on them, new ones
    start from zero and dropped ones disappear together with their spend.
    """
    spent_by_name = {c.name: c.spent for c in wallet.categories}
    categories = tuple(
        CategoryLimit(name=name, limit=float(limit), spent=spent_by_name.get(name, 0.0))
        for name, limit in limits.items()
    )
    return replace(wallet, categories=categories)


def add_category(wallet: WalletState, name: str, limit: float) -> WalletState:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name cannot be empty", field="name")
    if limit is None or not math.isfinite(limit) or limit <= 0:
        raise ValidationError("Category limit must be a positive number", field="limit")
    if any(c.name.lower() == name.lower() for c in wallet.categories):
        raise ValidationError(f"Category {name!r} already exists", field="name")

    limits = {c.name: c.limit for c in wallet.categories}
    limits[name] = limit
    return replace_categories(wallet, limits)


def remove_category(wallet: WalletState, name: str) -> WalletState:
    if find_category(wallet, name).is_none():
        raise ValidationError(f"Unknown category {name!r}", field="name")
    limits = {c.name: c.limit for c in wallet.categories if c.name != name}
    return replace_categories(wallet, limits)


def buffer_spent(wallet: WalletState, since: Optional[date] = None) -> float:
    """Amount admitted on buffer justification.

    With ``since`` only transactions from that day on count; ones whose
    timestamp cannot be read are left out.
    """
    if since is None:
        return sum(t.amount for t in wallet.transactions if t.used_buffer)
    return sum(
        t.amount for t in wallet.transactions
        if t.used_buffer and t.occurred_at is not None and t.occurred_at.date() >= since
    )
