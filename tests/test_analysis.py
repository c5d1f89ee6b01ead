from dataclasses import replace

import pytest

from budgetflow import analysis
from budgetflow.domain import CategoryLimit, Transaction, WalletState


def make_tx(id, amount, ts, category="lunch", used_buffer=False):
    return Transaction(id, amount, category, "item", "shop", ts, used_buffer,
                       "needed" if used_buffer else None)


def make_wallet(**overrides):
    wallet = WalletState(
        balance=50,
        usable_amount=40,
        buffer=10,
        categories=(
            CategoryLimit("tiffin", 10, 6),
            CategoryLimit("lunch", 15, 12),
            CategoryLimit("dinner", 15, 12),
            CategoryLimit("other", 10, 0),
        ),
        transactions=(
            make_tx("t4", 5, "2025-03-20T13:00:00", used_buffer=True),
            make_tx("t3", 7, "2025-03-02T13:00:00"),
            make_tx("t2", 12, "2025-01-15T20:00:00", category="dinner"),
            make_tx("t1", 6, "2024-03-30T08:00:00", category="tiffin"),
        ),
    )
    return replace(wallet, **overrides)


def test_total_spent():
    assert analysis.total_spent(make_wallet()) == 30


def test_savings_rate_is_zero_without_savings():
    assert analysis.savings_rate(make_wallet()) == 0


def test_savings_rate():
    assert analysis.savings_rate(make_wallet(savings=25)) == pytest.approx(50)


def test_savings_rate_empty_budget():
    assert analysis.savings_rate(make_wallet(usable_amount=0, buffer=0, savings=5)) == 0


def test_category_percentages():
    shares = analysis.category_percentages(make_wallet())
    assert shares == {
        "tiffin": pytest.approx(20),
        "lunch": pytest.approx(40),
        "dinner": pytest.approx(40),
        "other": 0,
    }


def test_category_percentages_nothing_spent():
    wallet = make_wallet(categories=(CategoryLimit("lunch", 15), CategoryLimit("other", 35)))
    assert analysis.category_percentages(wallet) == {"lunch": 0.0, "other": 0.0}


def test_top_categories_ties_broken_by_name():
    top = analysis.top_categories(make_wallet(), 3)
    assert [c.name for c in top] == ["dinner", "lunch", "tiffin"]


def test_top_categories_truncates():
    assert len(analysis.top_categories(make_wallet(), 10)) == 4
    assert analysis.top_categories(make_wallet(), 0) == []


def test_monthly_aggregate_is_calendar_ordered_and_zero_filled():
    monthly = analysis.monthly_aggregate(make_wallet())
    assert list(monthly) == ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                             "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    assert monthly["Jan"] == 12
    # March of both years lands in the same bucket
    assert monthly["Mar"] == 18
    assert monthly["Feb"] == 0
    assert sum(monthly.values()) == 30


def test_monthly_aggregate_skips_unreadable_timestamps():
    wallet = make_wallet(transactions=(make_tx("bad", 3, "14/3/2025, 9:30:00 AM"),))
    assert sum(analysis.monthly_aggregate(wallet).values()) == 0


def test_spending_and_buffer_percentages():
    wallet = make_wallet()
    assert analysis.spending_percentage(wallet) == pytest.approx(75)
    assert analysis.buffer_spent(wallet) == 5
    assert analysis.buffer_percentage(wallet) == pytest.approx(50)


def test_percentages_are_capped():
    wallet = make_wallet(categories=(CategoryLimit("lunch", 15, 90),))
    assert analysis.spending_percentage(wallet) == 100


@pytest.mark.parametrize("spent, limit, level", [
    (0, 10, "ok"), (4.9, 10, "ok"), (5, 10, "warning"), (7.9, 10, "warning"),
    (8, 10, "danger"), (12, 10, "danger"), (0, 0, "ok"), (1, 0, "danger"),
])
def test_progress_level(spent, limit, level):
    assert analysis.progress_level(spent, limit) == level


def test_investment_suggestion_emergency_fund():
    text = analysis.investment_suggestion(make_wallet())
    assert "emergency fund" in text
    assert "dinner" in text


def test_investment_suggestion_liquid_fund():
    text = analysis.investment_suggestion(make_wallet(savings=41))
    assert "liquid fund" in text


def test_investment_suggestion_growth():
    text = analysis.investment_suggestion(make_wallet(savings=121))
    assert "mutual funds" in text
    assert "40.00%" in text


def test_investment_suggestion_boundaries():
    assert "emergency fund of at least" in analysis.investment_suggestion(make_wallet(savings=40))
    assert "liquid fund" in analysis.investment_suggestion(make_wallet(savings=120))
