from datetime import datetime, timedelta, timezone

from pos.dashboard import DashboardView
from pos.dates import CUSTOM
from pos.events import EXPENSES_CHANGED, PRODUCTS_CHANGED, TRANSACTIONS_CHANGED
from pos.store import MemoryStore

TZ = timezone(timedelta(hours=8))
NOW = datetime(2025, 1, 15, 12, 0, tzinfo=TZ)


def make_store():
    return MemoryStore({
        "products": {
            "p1": {"title": "Soap", "price": 10, "stock": 1},
            "p2": {"title": "Mask", "price": 5, "stock": 0, "available": False},
        },
        "transactions": {
            "t1": {"customerName": "Ana", "products": [{"productName": "Soap", "price": 10}],
                   "total": 10, "finishedAt": "2025-01-15T09:00:00+08:00"},
            "t2": {"customerName": "Ben", "products": [{"title": "Soap", "price": 75}, {"title": "Mask", "price": 50}],
                   "finishedAt": "2025-01-02T09:00:00+08:00"},
            "t3": {"customerName": "Old", "products": [{"price": 999}], "total": 999,
                   "finishedAt": "2024-11-01T09:00:00+08:00"},
        },
        "expenses": {
            "e1": {"amount": 100, "date": "2025-01-10T09:00:00+08:00"},
        },
    })


def make_view(store, **kwargs):
    return DashboardView(store, tz=TZ, clock=lambda: NOW, **kwargs)


def test_summary_for_default_window():
    with make_view(make_store()) as view:
        s = view.summary
        assert s.window.preset == "last_30_days"
        assert (s.total_products, s.available_products) == (2, 1)
        assert s.revenue == 135
        assert s.expenses == 100
        assert s.net_income == 35
        assert len(s.transactions) == 2
        assert [p.customer for p in s.points] == ["Ben", "Ana"]
        assert s.today.counts == {"Soap": 1}


def test_subscriptions_released_on_exit():
    store = make_store()
    with make_view(store) as view:
        assert view.is_open
        for name in (PRODUCTS_CHANGED, TRANSACTIONS_CHANGED, EXPENSES_CHANGED):
            assert store.events.subscriber_count(name) == 1
    assert not view.is_open
    for name in (PRODUCTS_CHANGED, TRANSACTIONS_CHANGED, EXPENSES_CHANGED):
        assert store.events.subscriber_count(name) == 0


def test_open_recomputes_once():
    seen = []
    view = make_view(make_store(), on_change=seen.append).open()
    assert len(seen) == 1
    view.close()


def test_write_triggers_recompute():
    store = make_store()
    seen = []
    with make_view(store, on_change=seen.append) as view:
        store.push("expenses", {"amount": 20, "date": "2025-01-14T09:00:00+08:00"})
        assert view.summary.expenses == 120
        assert len(seen) == 2
    store.push("expenses", {"amount": 20, "date": "2025-01-14T09:00:00+08:00"})
    assert len(seen) == 2


def test_presets_change_window():
    with make_view(make_store()) as view:
        assert view.set_preset("daily").revenue == 10
        assert view.set_preset("monthly").revenue == 135


def test_start_after_end_pushes_end_forward():
    with make_view(make_store()) as view:
        view.set_preset("daily")
        view.set_end(datetime(2025, 1, 10))
        view.set_start(datetime(2025, 1, 12))
        assert view.window.preset == CUSTOM
        assert view.window.start == datetime(2025, 1, 12, tzinfo=TZ)
        assert view.window.end == datetime(2025, 1, 12, 23, 59, 59, 999999, tzinfo=TZ)


def test_end_before_start_pulls_start_back():
    with make_view(make_store()) as view:
        view.set_start(datetime(2025, 1, 10))
        s = view.set_end(datetime(2024, 11, 1))
        assert view.window.start == datetime(2024, 11, 1, tzinfo=TZ)
        assert s.revenue == 999


def test_buckets_from_summary():
    with make_view(make_store()) as view:
        buckets = view.summary.buckets("month", TZ)
        assert [(b.label, b.total) for b in buckets] == [("January 2025", 135)]
