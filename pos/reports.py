"""Revenue, expense and product-count aggregation for the dashboard.

All functions are pure: they take record tuples and a window and recompute
from scratch, which is fine for a shop's few thousand records.
"""
from collections import defaultdict
from datetime import datetime, timedelta, tzinfo
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence

import pandas as pd

from pos.dates import now_local, start_of_day, start_of_month, start_of_week, to_local
from pos.domain import Expense, Transaction
from pos.filters import by_expense_date_between, by_finished_between, by_finished_today, iter_matching

GRANULARITIES = ("day", "week", "month")


class Bucket(NamedTuple):
    label: str
    start: datetime
    total: float


class ProductCounts(NamedTuple):
    counts: Dict[str, int]
    total: int


class ChartPoint(NamedTuple):
    date: datetime
    label: str
    revenue: float
    service: str
    customer: str


def effective_total(t: Transaction) -> float:
    return t.effective_total


def total_revenue(trans: Iterable[Transaction], start: datetime, end: datetime) -> float:
    return sum((effective_total(t) for t in iter_matching(trans, by_finished_between(start, end))), 0.0)


def total_expenses(expenses: Iterable[Expense], start: datetime, end: datetime) -> float:
    return sum((e.amount for e in iter_matching(expenses, by_expense_date_between(start, end))), 0.0)


def net_income(
    trans: Iterable[Transaction], expenses: Iterable[Expense], start: datetime, end: datetime
) -> float:
    return total_revenue(trans, start, end) - total_expenses(expenses, start, end)


def _short_date(d: datetime) -> str:
    return f"{d:%b} {d.day}, {d.year}"


def _day_bucket(d: datetime) -> tuple[datetime, str]:
    start = start_of_day(d)
    return start, _short_date(start)


def _week_bucket(d: datetime) -> tuple[datetime, str]:
    start = start_of_week(d)
    end = start + timedelta(days=6)
    return start, f"{start:%b} {start.day} - {_short_date(end)}"


def _month_bucket(d: datetime) -> tuple[datetime, str]:
    start = start_of_month(d)
    return start, f"{start:%B} {start.year}"


_BUCKETERS: Dict[str, Callable[[datetime], tuple[datetime, str]]] = {
    "day": _day_bucket,
    "week": _week_bucket,
    "month": _month_bucket,
}


def bucket_by(trans: Iterable[Transaction], granularity: str, tz: Optional[tzinfo] = None) -> List[Bucket]:
    """Sum effective totals per calendar day, Monday-based week, or month.

    Only periods with at least one transaction appear, ordered by period start.
    """
    try:
        bucketer = _BUCKETERS[granularity]
    except KeyError:
        raise ValueError(f"granularity must be one of {GRANULARITIES}, got {granularity!r}") from None

    # keyed on the wall-clock period start; aware starts differ in offset across DST
    totals: Dict[datetime, float] = defaultdict(float)
    firsts: Dict[datetime, tuple[datetime, str]] = {}
    for t in trans:
        if t.finished_at is None:
            continue
        start, label = bucketer(to_local(t.finished_at, tz))
        wall = start.replace(tzinfo=None)
        totals[wall] += effective_total(t)
        firsts.setdefault(wall, (start, label))

    return [Bucket(firsts[w][1], firsts[w][0], totals[w]) for w in sorted(totals)]


def todays_product_counts(
    trans: Iterable[Transaction], now: Optional[datetime] = None, tz: Optional[tzinfo] = None
) -> ProductCounts:
    """Count line items sold today, keyed by product display name."""
    now = to_local(now, tz) if now is not None else now_local(tz)
    counts: Dict[str, int] = defaultdict(int)
    total = 0
    for t in iter_matching(trans, by_finished_today(now)):
        for item in t.items:
            counts[item.product_name] += 1
            total += 1
    return ProductCounts(dict(counts), total)


def chart_points(trans: Iterable[Transaction], tz: Optional[tzinfo] = None) -> List[ChartPoint]:
    points = []
    for t in trans:
        if t.finished_at is None:
            continue
        d = to_local(t.finished_at, tz)
        points.append(ChartPoint(
            date=d,
            label=f"{_short_date(d)} {d:%H:%M}",
            revenue=effective_total(t),
            service=", ".join(i.product_name for i in t.items) if t.items else "Product",
            customer=t.customer_name or "Customer",
        ))
    points.sort(key=lambda p: p.date)
    return points


def points_frame(points: Sequence[ChartPoint]) -> pd.DataFrame:
    columns = list(ChartPoint._fields)
    if not points:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([p._asdict() for p in points], columns=columns)


def buckets_frame(buckets: Sequence[Bucket]) -> pd.DataFrame:
    return pd.DataFrame(
        {"period": [b.label for b in buckets], "revenue": [b.total for b in buckets]},
        columns=["period", "revenue"],
    )


class ReportService:
    """Runs aggregators over one reporting window and keeps each step's output.

    Aggregators are called as ``agg(window, transactions, expenses, acc)`` and
    return a dict merged into the running result.
    """

    def __init__(self, aggregators: Sequence[Callable[..., Dict[str, Any]]]):
        self.aggregators = aggregators

    def window_report(self, window, transactions: Sequence[Transaction], expenses: Sequence[Expense]) -> Dict[str, Any]:
        report: Dict[str, Any] = {"window": window, "steps": [], "result": {}}
        acc: Dict[str, Any] = {}
        for agg in self.aggregators:
            out = agg(window, transactions, expenses, acc)
            report["steps"].append({"aggregator": getattr(agg, "__name__", str(agg)), "output": out})
            if isinstance(out, dict):
                acc.update(out)
        report["result"] = acc
        return report


def agg_revenue(window, transactions, expenses, acc):
    return {"revenue": total_revenue(transactions, window.start, window.end)}


def agg_expenses(window, transactions, expenses, acc):
    return {"expenses": total_expenses(expenses, window.start, window.end)}


def agg_net_income(window, transactions, expenses, acc):
    if "revenue" in acc and "expenses" in acc:
        return {"net_income": acc["revenue"] - acc["expenses"]}
    return {"net_income": net_income(transactions, expenses, window.start, window.end)}


def agg_window_transactions(window, transactions, expenses, acc):
    selected = tuple(iter_matching(transactions, by_finished_between(window.start, window.end)))
    return {"transactions": selected, "transaction_count": len(selected)}


DEFAULT_AGGREGATORS = (agg_revenue, agg_expenses, agg_net_income, agg_window_transactions)

