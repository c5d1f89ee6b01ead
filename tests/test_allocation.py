import pytest

from budgetflow.allocation import derive_wallet_allocation, validate_habits
from budgetflow.config import EngineSettings
from budgetflow.domain import DailyHabits
from budgetflow.errors import InvalidAllocation


def make_habits():
    return DailyHabits(
        daily_spend=50,
        categories={"tiffin": 10, "lunch": 15, "dinner": 15, "transport": 10},
    )


def test_split_into_usable_and_buffer():
    wallet = derive_wallet_allocation(make_habits(), 1500)
    assert wallet.usable_amount == pytest.approx(40)
    assert wallet.buffer == pytest.approx(10)
    assert wallet.balance == 50


def test_declared_categories_then_other():
    wallet = derive_wallet_allocation(make_habits(), 1500)
    assert wallet.category_names == ("tiffin", "lunch", "dinner", "transport", "other")
    assert [c.limit for c in wallet.categories] == [10, 15, 15, 10, 0]
    assert all(c.spent == 0 for c in wallet.categories)


def test_fresh_wallet_state():
    wallet = derive_wallet_allocation(make_habits(), 1500)
    assert wallet.transactions == ()
    assert wallet.savings == 0
    assert wallet.budget_locked is False
    assert wallet.rewards == 0


@pytest.mark.parametrize("daily, declared", [
    (50, {"tiffin": 10, "lunch": 15}),
    (33.3, {"coffee": 3.3, "bus": 7.25}),
    (120, {}),
    (0.3, {"a": 0.1, "b": 0.2}),
    (80, {"rent": 80}),
])
def test_limits_and_split_add_up_to_daily_spend(daily, declared):
    wallet = derive_wallet_allocation(DailyHabits(daily, declared), 0)
    assert wallet.usable_amount + wallet.buffer == pytest.approx(daily)
    assert sum(c.limit for c in wallet.categories) == pytest.approx(daily)


def test_other_gets_the_remainder():
    wallet = derive_wallet_allocation(DailyHabits(60, {"lunch": 20}), 1800)
    other = wallet.categories[-1]
    assert other.name == "other"
    assert other.limit == pytest.approx(40)


def test_categories_exceeding_daily_spend_fail():
    habits = DailyHabits(30, {"tiffin": 10, "lunch": 15, "dinner": 15})
    with pytest.raises(InvalidAllocation, match="more than the daily spend"):
        derive_wallet_allocation(habits, 900)


@pytest.mark.parametrize("habits, monthly", [
    (DailyHabits(0, {}), 100),
    (DailyHabits(-5, {}), 100),
    (DailyHabits(50, {"lunch": -1}), 100),
    (DailyHabits(50, {"other": 5}), 100),
    (DailyHabits(50, {"  ": 5}), 100),
    (DailyHabits(50, {"lunch": 5}), -1),
    (DailyHabits(float("nan"), {}), 100),
    (DailyHabits(float("inf"), {}), 100),
    (DailyHabits(50, {"lunch": float("nan")}), 100),
    (DailyHabits(50, {"lunch": 5}), float("nan")),
    (DailyHabits(50, {"Other": 5}), 100),
    (DailyHabits(50, {" OTHER ": 5}), 100),
    (DailyHabits(50, {"Lunch": 5, "lunch": 5}), 100),
])
def test_invalid_habits_rejected(habits, monthly):
    assert validate_habits(habits, monthly).is_left()
    with pytest.raises(InvalidAllocation):
        derive_wallet_allocation(habits, monthly)


def test_custom_usable_share():
    wallet = derive_wallet_allocation(make_habits(), 1500, EngineSettings(usable_share=0.7))
    assert wallet.usable_amount == pytest.approx(35)
    assert wallet.buffer == pytest.approx(15)


def test_reserved_name_error_regardless_of_case():
    result = validate_habits(DailyHabits(50, {"Other": 5}), 100)
    assert result.get_error()["error"] == "reserved_category"
