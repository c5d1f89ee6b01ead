from dataclasses import replace
from datetime import datetime
from itertools import count

import pytest

from budgetflow.allocation import derive_wallet_allocation
from budgetflow.config import BufferPolicy, EngineSettings
from budgetflow.decisions import Allowed, Rejected, RequiresBufferJustification
from budgetflow.domain import DailyHabits, TransactionCandidate
from budgetflow.engine import TransactionAdmissionEngine, validate_candidate
from budgetflow.errors import AdmissionRejected, InvalidCandidate, JustificationRequired
from budgetflow.rewards import ResetOnNewDay
from budgetflow.wallet import find_category


def make_wallet():
    habits = DailyHabits(50, {"tiffin": 10, "lunch": 15, "dinner": 15, "transport": 10})
    return derive_wallet_allocation(habits, 1500)


def make_engine(policy=BufferPolicy.UNLIMITED):
    ids = count(1)
    return TransactionAdmissionEngine(
        settings=EngineSettings(buffer_policy=policy),
        clock=lambda: datetime(2025, 3, 14, 9, 30),
        id_factory=lambda: f"tx{next(ids)}",
    )


def spend(category, amount, description="snack", recipient="canteen"):
    return TransactionCandidate(amount, category, description, recipient)


def spent_in(wallet, name):
    return find_category(wallet, name).get_or_else(None).spent


def test_category_over_limit_requires_buffer():
    decision = make_engine().evaluate(make_wallet(), spend("tiffin", 12))
    assert decision == RequiresBufferJustification("category_limit")
    assert decision.requires_justification()


def test_other_with_no_headroom_needs_buffer():
    wallet = make_wallet()
    assert find_category(wallet, "other").get_or_else(None).limit == 0
    # far below the 32 threshold, but over the zero limit of "other"
    assert make_engine().evaluate(wallet, spend("other", 0.01)) == RequiresBufferJustification("category_limit")


def test_under_threshold_is_allowed():
    wallet = make_wallet()
    decision = make_engine().evaluate(wallet, spend("transport", 0.01))
    assert decision == Allowed()
    assert decision.is_allowed()


def test_budget_threshold_requires_buffer():
    engine = make_engine()
    wallet, _ = engine.admit(make_wallet(), spend("tiffin", 10))
    wallet, _ = engine.admit(wallet, spend("lunch", 15))
    # 25 + 8 = 33 > 40 * 0.8
    assert engine.evaluate(wallet, spend("dinner", 8)) == RequiresBufferJustification("budget_threshold")


def test_exactly_at_threshold_is_allowed():
    engine = make_engine()
    wallet, _ = engine.admit(make_wallet(), spend("tiffin", 10))
    wallet, _ = engine.admit(wallet, spend("lunch", 15))
    assert engine.evaluate(wallet, spend("dinner", 7)) == Allowed()


def test_category_rule_wins_over_threshold():
    engine = make_engine()
    wallet, _ = engine.admit(make_wallet(), spend("tiffin", 10))
    wallet, _ = engine.admit(wallet, spend("lunch", 15))
    assert engine.evaluate(wallet, spend("transport", 11)) == RequiresBufferJustification("category_limit")


@pytest.mark.parametrize("candidate", [
    spend("tiffin", 1),
    spend("tiffin", 500),
    spend("missing", 5),
    spend("lunch", -3),
    spend("lunch", 2, description=""),
])
def test_locked_wallet_rejects_everything(candidate):
    wallet = replace(make_wallet(), budget_locked=True)
    assert make_engine().evaluate(wallet, candidate) == Rejected("locked")


@pytest.mark.parametrize("candidate, field", [
    (spend("lunch", 0), "amount"),
    (spend("lunch", -2), "amount"),
    (spend("lunch", float("nan")), "amount"),
    (spend("lunch", float("inf")), "amount"),
    (spend("lunch", float("-inf")), "amount"),
    (spend("brunch", 2), "category"),
    (spend("lunch", 2, description="  "), "description"),
    (spend("lunch", 2, recipient=""), "recipient"),
])
def test_invalid_candidates(candidate, field):
    wallet = make_wallet()
    assert validate_candidate(wallet, candidate).is_left()
    with pytest.raises(InvalidCandidate) as exc:
        make_engine().evaluate(wallet, candidate)
    assert exc.value.field == field


def test_evaluate_has_no_side_effects():
    engine = make_engine()
    wallet = make_wallet()
    before = wallet.to_document()
    first = engine.evaluate(wallet, spend("tiffin", 12))
    second = engine.evaluate(wallet, spend("tiffin", 12))
    assert first == second
    assert wallet.to_document() == before


def test_admit_allowed_changes_only_category_and_log():
    engine = make_engine()
    wallet = make_wallet()
    updated, t = engine.admit(wallet, spend("lunch", 4.5, "thali", "mess"))

    assert spent_in(updated, "lunch") == pytest.approx(4.5)
    assert updated.transactions == (t,)
    assert updated.categories[0] == wallet.categories[0]
    assert replace(updated, categories=wallet.categories, transactions=()) == wallet

    assert t.id == "tx1"
    assert t.amount == 4.5
    assert t.timestamp == "2025-03-14T09:30:00"
    assert t.used_buffer is False
    assert t.buffer_reason is None


def test_transactions_are_newest_first():
    engine = make_engine()
    wallet, first = engine.admit(make_wallet(), spend("lunch", 1))
    wallet, second = engine.admit(wallet, spend("dinner", 2))
    assert wallet.transactions == (second, first)


def test_lunch_overflow_with_emergency_reason():
    engine = make_engine()
    wallet = make_wallet()
    for _ in range(5):
        assert engine.evaluate(wallet, spend("lunch", 3)) == Allowed()
        wallet, _ = engine.admit(wallet, spend("lunch", 3))

    assert engine.evaluate(wallet, spend("lunch", 3)) == RequiresBufferJustification("category_limit")
    with pytest.raises(JustificationRequired):
        engine.admit(wallet, spend("lunch", 3))

    wallet, t = engine.admit(wallet, spend("lunch", 3), justification="emergency")
    assert spent_in(wallet, "lunch") == pytest.approx(18)
    assert t.used_buffer is True
    assert t.buffer_reason == "emergency"
    assert len(wallet.transactions) == 6


def test_blank_justification_is_not_enough():
    with pytest.raises(JustificationRequired) as exc:
        make_engine().admit(make_wallet(), spend("tiffin", 12), justification="   ")
    assert exc.value.reason == "category_limit"


def test_justification_ignored_when_allowed():
    _, t = make_engine().admit(make_wallet(), spend("tiffin", 2), justification="just because")
    assert t.used_buffer is False
    assert t.buffer_reason is None


def test_admit_on_locked_wallet_raises():
    wallet = replace(make_wallet(), budget_locked=True)
    with pytest.raises(AdmissionRejected) as exc:
        make_engine().admit(wallet, spend("tiffin", 2))
    assert exc.value.reason == "locked"


def test_unlimited_buffer_allows_large_overspend():
    engine = make_engine()
    wallet, t = engine.admit(make_wallet(), spend("dinner", 200), justification="party")
    assert t.used_buffer
    assert spent_in(wallet, "dinner") == 200


def test_capped_buffer_rejects_when_exhausted():
    engine = make_engine(BufferPolicy.CAPPED)
    wallet = make_wallet()
    assert engine.evaluate(wallet, spend("lunch", 16)) == Rejected("buffer_exhausted")

    wallet, _ = engine.admit(wallet, spend("tiffin", 5))
    assert engine.evaluate(wallet, spend("tiffin", 9)) == RequiresBufferJustification("category_limit")
    wallet, _ = engine.admit(wallet, spend("tiffin", 9), justification="guests")

    # 9 of the 10 buffer already used
    assert engine.evaluate(wallet, spend("tiffin", 2)) == Rejected("buffer_exhausted")
    with pytest.raises(AdmissionRejected):
        engine.admit(wallet, spend("tiffin", 2), justification="again")
    assert engine.evaluate(wallet, spend("dinner", 1)) == Allowed()


def test_other_with_headroom_is_allowed():
    wallet = derive_wallet_allocation(DailyHabits(50, {"tiffin": 10, "lunch": 15, "dinner": 15}), 1500)
    assert make_engine().evaluate(wallet, spend("other", 0.01)) == Allowed()


def test_nan_amount_never_reaches_the_wallet():
    wallet = make_wallet()
    with pytest.raises(InvalidCandidate):
        make_engine().admit(wallet, spend("lunch", float("nan")))
    assert spent_in(wallet, "lunch") == 0


def test_capped_buffer_starts_over_each_day():
    now = [datetime(2025, 3, 13, 9, 0)]
    engine = TransactionAdmissionEngine(
        settings=EngineSettings(buffer_policy=BufferPolicy.CAPPED),
        clock=lambda: now[0],
        reset_policy=ResetOnNewDay(),
    )
    wallet, _ = engine.admit(make_wallet(), spend("tiffin", 10))
    wallet, t = engine.admit(wallet, spend("tiffin", 10), justification="guests")
    assert t.used_buffer
    assert engine.buffer_used(wallet) == 10
    assert engine.evaluate(wallet, spend("other", 5)) == Rejected("buffer_exhausted")

    now[0] = datetime(2025, 3, 14, 8, 0)
    wallet = engine.reset_policy.reset_if_new_day(wallet, now[0])
    assert engine.buffer_used(wallet) == 0
    assert engine.evaluate(wallet, spend("other", 5)) == RequiresBufferJustification("category_limit")


def test_capped_buffer_without_reset_counts_all_history():
    now = [datetime(2025, 3, 13, 9, 0)]
    engine = TransactionAdmissionEngine(
        settings=EngineSettings(buffer_policy=BufferPolicy.CAPPED), clock=lambda: now[0],
    )
    wallet, _ = engine.admit(make_wallet(), spend("other", 8), justification="repairs")
    now[0] = datetime(2025, 3, 20, 8, 0)
    assert engine.evaluate(wallet, spend("other", 5)) == Rejected("buffer_exhausted")
