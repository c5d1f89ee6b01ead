import logging
import math
from typing import Optional

from budgetflow.config import OTHER_CATEGORY, EngineSettings
from budgetflow.domain import CategoryLimit, DailyHabits, WalletState
from budgetflow.errors import InvalidAllocation
from budgetflow.functional import Either, Left, Right

logger = logging.getLogger(__name__)

TOLERANCE = 1e-9


def _finite(value) -> bool:
    return value is not None and math.isfinite(value)


def validate_habits(habits: DailyHabits, monthly_budget: float) -> Either[dict, DailyHabits]:
    if not _finite(monthly_budget) or monthly_budget < 0:
        return Left({
            "error": "invalid_monthly_budget",
            "message": f"Monthly budget must be zero or more, got {monthly_budget}",
        })
    if not _finite(habits.daily_spend) or habits.daily_spend <= 0:
        return Left({
            "error": "invalid_daily_spend",
            "message": f"Daily spend must be positive, got {habits.daily_spend}",
        })

    seen = set()
    for name, amount in habits.categories.items():
        key = (name or "").strip().lower()
        if not key:
            return Left({"error": "blank_category", "message": "Category names cannot be blank"})
        if key == OTHER_CATEGORY:
            return Left({
                "error": "reserved_category",
                "message": f"'{OTHER_CATEGORY}' is filled in automatically and cannot be declared",
            })
        if key in seen:
            return Left({
                "error": "duplicate_category",
                "message": f"Category {name!r} is declared twice",
                "category": name,
            })
        seen.add(key)
        if not _finite(amount) or amount < 0:
            return Left({
                "error": "negative_amount",
                "message": f"Amount for {name} must be zero or more, got {amount}",
                "category": name,
            })

    declared = sum(habits.categories.values())
    if declared - habits.daily_spend > TOLERANCE:
        return Left({
            "error": "categories_exceed_daily_spend",
            "message": f"Categories add up to {declared:.2f}, more than the daily spend "
                       f"of {habits.daily_spend:.2f}",
            "declared": declared,
            "daily_spend": habits.daily_spend,
        })
    return Right(habits)


def derive_wallet_allocation(
    habits: DailyHabits,
    monthly_budget: float,
    settings: Optional[EngineSettings] = None,
) -> WalletState:
    """Build a fresh wallet from the user's declared daily habits.

    The daily spend is split into a usable amount and a buffer. Each declared
    category becomes a limit, and ``other`` takes whatever is left of the daily
    spend so that the limits add up to it exactly.
    """
    settings = settings or EngineSettings()
    habits = validate_habits(habits, monthly_budget).get_or_raise(
        lambda err: InvalidAllocation(err["message"])
    )

    daily = float(habits.daily_spend)
    declared = tuple(
        CategoryLimit(name=name, limit=float(amount)) for name, amount in habits.categories.items()
    )
    other = CategoryLimit(name=OTHER_CATEGORY, limit=max(0.0, daily - sum(c.limit for c in declared)))

    wallet = WalletState(
        balance=daily,
        usable_amount=daily * settings.usable_share,
        buffer=daily * settings.buffer_share,
        categories=declared + (other,),
    )
    logger.info("Allocated daily budget %.2f: usable %.2f, buffer %.2f, %d categories",
                daily, wallet.usable_amount, wallet.buffer, len(wallet.categories))
    return wallet
