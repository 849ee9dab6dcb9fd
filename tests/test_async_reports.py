from datetime import datetime, timedelta, timezone

import pytest

from pos.async_reports import expenses_by_month, monthly_overview, revenue_by_month
from pos.domain import Expense, LineItem, Transaction

TZ = timezone(timedelta(hours=8))


def make_tx(id, amount, when, total=True):
    items = (LineItem(product_id=None, product_name="A", price=amount),)
    return Transaction(id=id, customer_name="Ana", items=items, finished_at=when, total=amount if total else None)


def make_exp(id, amount, when):
    return Expense(id=id, amount=amount, date=when)


@pytest.mark.asyncio
async def test_revenue_by_month():
    trans = [
        make_tx("t1", 100, datetime(2025, 1, 2, tzinfo=TZ)),
        make_tx("t2", 50, datetime(2025, 1, 20, tzinfo=TZ), total=False),
        make_tx("t3", 70, datetime(2025, 2, 5, tzinfo=TZ)),
        make_tx("t4", 999, None),
    ]
    res = await revenue_by_month(trans, ["2025-01", "2025-02", "2025-03"], TZ)
    assert res == {"2025-01": 150, "2025-02": 70, "2025-03": 0}


@pytest.mark.asyncio
async def test_month_assignment_uses_reporting_timezone():
    # 2025-01-31 20:00 UTC is already February in UTC+8
    when = datetime(2025, 1, 31, 20, 0, tzinfo=timezone.utc)
    res = await expenses_by_month([make_exp("e1", 10, when)], ["2025-01", "2025-02"], TZ)
    assert res == {"2025-01": 0, "2025-02": 10}


@pytest.mark.asyncio
async def test_monthly_overview():
    trans = [make_tx("t1", 300, datetime(2025, 1, 2, tzinfo=TZ))]
    expenses = [make_exp("e1", 120, datetime(2025, 1, 3, tzinfo=TZ)), make_exp("e2", 40, None)]
    res = await monthly_overview(trans, expenses, ["2024-12", "2025-01"], TZ)
    assert res["2025-01"] == {"revenue": 300, "expenses": 120, "net_income": 180}
    assert res["2024-12"]["net_income"] == 0


@pytest.mark.asyncio
async def test_monthly_overview_empty():
    assert await monthly_overview([], [], [], TZ) == {}
