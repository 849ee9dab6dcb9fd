import asyncio
from datetime import tzinfo
from typing import Dict, List, Optional, Sequence

from pos.dates import to_local
from pos.domain import Expense, Transaction


async def revenue_by_month(
    trans: Sequence[Transaction], months: List[str], tz: Optional[tzinfo] = None
) -> Dict[str, float]:
    """Total effective revenue per month, one task per month.

    months: list of YYYY-MM strings (e.g., '2025-01')
    """
    async def month_total(month: str) -> tuple[str, float]:
        total = 0.0
        for t in trans:
            if t.finished_at is not None and f"{to_local(t.finished_at, tz):%Y-%m}" == month:
                total += t.effective_total
        await asyncio.sleep(0)  # cooperate
        return month, total

    results = await asyncio.gather(*(month_total(m) for m in months))
    return {k: v for k, v in results}


async def expenses_by_month(
    expenses: Sequence[Expense], months: List[str], tz: Optional[tzinfo] = None
) -> Dict[str, float]:
    async def month_total(month: str) -> tuple[str, float]:
        total = 0.0
        for e in expenses:
            if e.date is not None and f"{to_local(e.date, tz):%Y-%m}" == month:
                total += e.amount
        await asyncio.sleep(0)
        return month, total

    results = await asyncio.gather(*(month_total(m) for m in months))
    return {k: v for k, v in results}


async def monthly_overview(
    trans: Sequence[Transaction], expenses: Sequence[Expense], months: List[str], tz: Optional[tzinfo] = None
) -> Dict[str, Dict[str, float]]:
    """Revenue, expenses and net income per month, computed concurrently."""
    revenue, spent = await asyncio.gather(
        revenue_by_month(trans, months, tz),
        expenses_by_month(expenses, months, tz),
    )
    return {
        m: {"revenue": revenue[m], "expenses": spent[m], "net_income": revenue[m] - spent[m]}
        for m in months
    }
