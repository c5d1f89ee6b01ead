from typing import Callable, Iterable, Iterator

from budgetflow.domain import Transaction

Predicate = Callable[[Transaction], bool]


def by_category(name: str) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.category == name

    return _filter


def by_month(month: str) -> Predicate:
    """``month`` is YYYY-MM."""
    def _filter(t: Transaction) -> bool:
        return t.timestamp.startswith(month)

    return _filter


def matches_query(query: str) -> Predicate:
    needle = (query or "").strip().lower()

    def _filter(t: Transaction) -> bool:
        if not needle:
            return True
        return needle in t.description.lower() or needle in t.recipient.lower()

    return _filter


def buffered_only(t: Transaction) -> bool:
    return t.used_buffer


def filter_transactions(trans: Iterable[Transaction], *preds: Predicate) -> Iterator[Transaction]:
    for t in trans:
        if all(p(t) for p in preds):
            yield t


def transaction_categories(trans: Iterable[Transaction]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(t.category for t in trans))
