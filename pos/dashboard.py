from datetime import datetime, tzinfo
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from pos.dates import CUSTOM, DateWindow, end_of_day, now_local, preset_window, start_of_day, to_local
from pos.domain import Expense, Product, Transaction
from pos.events import Subscription
from pos.logging import get_logger
from pos.reports import (
    DEFAULT_AGGREGATORS, Bucket, ChartPoint, ProductCounts, ReportService,
    bucket_by, chart_points, todays_product_counts,
)
from pos.store import Store
from pos.transforms import (
    Records, available_products, expenses_from_records, products_from_records, transactions_from_records,
)

log = get_logger("dashboard")

DEFAULT_PRESET = "last_30_days"


class DashboardSummary(NamedTuple):
    window: DateWindow
    total_products: int
    available_products: int
    revenue: float
    expenses: float
    net_income: float
    transactions: Tuple[Transaction, ...]
    points: List[ChartPoint]
    today: ProductCounts

    def buckets(self, granularity: str, tz: Optional[tzinfo] = None) -> List[Bucket]:
        return bucket_by(self.transactions, granularity, tz)


class DashboardView:
    """Live dashboard over the three collections.

    Holds one subscription per collection for as long as the view is open;
    every notification swaps in that collection's snapshot and recomputes the
    summary. Use as a context manager, or call close(), to detach.
    """

    def __init__(
        self,
        store: Store,
        window: Optional[DateWindow] = None,
        *,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
        on_change: Optional[Callable[[DashboardSummary], Any]] = None,
    ):
        self.store = store
        self.tz = tz
        self._clock = clock or (lambda: now_local(tz))
        self.window = window or preset_window(DEFAULT_PRESET, self._clock())
        self.on_change = on_change
        self.reports = ReportService(DEFAULT_AGGREGATORS)

        self.products: Tuple[Product, ...] = ()
        self.transactions: Tuple[Transaction, ...] = ()
        self.expenses: Tuple[Expense, ...] = ()
        self.summary: Optional[DashboardSummary] = None
        self._subscriptions: List[Subscription] = []
        self._opening = False

    # ---------- lifecycle ----------
    def open(self) -> "DashboardView":
        if self._subscriptions:
            return self
        self._opening = True
        try:
            self._subscriptions.append(self.store.subscribe("products", self._on_products))
            self._subscriptions.append(self.store.subscribe("transactions", self._on_transactions))
            self._subscriptions.append(self.store.subscribe("expenses", self._on_expenses))
        except Exception:
            self.close()
            raise
        finally:
            self._opening = False
        self.recompute()
        return self

    def close(self) -> None:
        while self._subscriptions:
            self._subscriptions.pop().close()

    @property
    def is_open(self) -> bool:
        return bool(self._subscriptions)

    def __enter__(self) -> "DashboardView":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    # ---------- snapshots ----------
    def _on_products(self, records: Records) -> None:
        self.products = products_from_records(records, self.tz)
        self._changed()

    def _on_transactions(self, records: Records) -> None:
        self.transactions = transactions_from_records(records, self.tz)
        self._changed()

    def _on_expenses(self, records: Records) -> None:
        self.expenses = expenses_from_records(records, self.tz)
        self._changed()

    def _changed(self) -> None:
        # initial snapshots arrive one per subscribe; recompute once all three are in
        if not self._opening:
            self.recompute()

    # ---------- window ----------
    def set_preset(self, preset: str) -> DashboardSummary:
        self.window = preset_window(preset, self._clock())
        return self.recompute()

    def set_start(self, date: datetime) -> DashboardSummary:
        start = start_of_day(to_local(date, self.tz))
        end = self.window.end
        if end < start:
            end = end_of_day(start)
        self.window = DateWindow(start, end, CUSTOM)
        return self.recompute()

    def set_end(self, date: datetime) -> DashboardSummary:
        end = end_of_day(to_local(date, self.tz))
        start = self.window.start
        if start > end:
            start = start_of_day(end)
        self.window = DateWindow(start, end, CUSTOM)
        return self.recompute()

    # ---------- aggregation ----------
    def recompute(self) -> DashboardSummary:
        report = self.reports.window_report(self.window, self.transactions, self.expenses)
        result: Dict[str, Any] = report["result"]
        selected = result["transactions"]
        self.summary = DashboardSummary(
            window=self.window,
            total_products=len(self.products),
            available_products=len(available_products(self.products)),
            revenue=result["revenue"],
            expenses=result["expenses"],
            net_income=result["net_income"],
            transactions=selected,
            points=chart_points(selected, self.tz),
            today=todays_product_counts(self.transactions, self._clock(), self.tz),
        )
        log.debug(
            f"Recomputed {self.window.preset} window: revenue={self.summary.revenue} "
            f"expenses={self.summary.expenses} transactions={len(selected)}"
        )
        if self.on_change is not None:
            self.on_change(self.summary)
        return self.summary
