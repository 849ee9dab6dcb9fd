from datetime import datetime
from typing import Callable, Iterable, Iterator, Optional, TypeVar

from pos.dates import end_of_day, start_of_day, to_local, within
from pos.domain import Expense, Transaction

R = TypeVar("R")


def by_finished_between(start: datetime, end: datetime) -> Callable[[Transaction], bool]:
    start, end = to_local(start), to_local(end)

    def _filter(t: Transaction) -> bool:
        return within(t.finished_at, start, end)

    return _filter


def by_expense_date_between(start: datetime, end: datetime) -> Callable[[Expense], bool]:
    start, end = to_local(start), to_local(end)

    def _filter(e: Expense) -> bool:
        return within(e.date, start, end)

    return _filter


def by_finished_today(now: datetime) -> Callable[[Transaction], bool]:
    return by_finished_between(start_of_day(now), end_of_day(now))


def by_customer(query: str) -> Callable[[Transaction], bool]:
    needle = query.strip().lower()

    def _filter(t: Transaction) -> bool:
        return needle in t.customer_name.lower()

    return _filter


def iter_matching(records: Iterable[R], pred: Optional[Callable[[R], bool]] = None) -> Iterator[R]:
    for r in records:
        if pred is None or pred(r):
            yield r
