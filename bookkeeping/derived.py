"""
Figures derived from the client cache on every read.

The stored MonthlyProfit snapshot is not trusted for DPP on screen: after any
optimistic mutation the cached orders, expenses and shipping records are the
freshest state, so DPP and payouts are recomputed from them each time they
are read. Nothing here is memoized.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from bookkeeping.aggregator import paid_orders
from bookkeeping.models import ExpenseType, PayoutBreakdown, PayoutConfig
from bookkeeping.payouts import compute_payout
from bookkeeping.periods import MonthRange, shift_month
from bookkeeping.query_cache import EXPENSES, ORDERS, PAYOUT_CONFIG, SHIPPING_RECORDS, SHIPPING_SHADOWS, QueryCache
from bookkeeping.shipping_ledger import DEFAULT_SCOOTER_CHARGE, merge_shipping_records

PAYOUT_CONFIG_KEY = (PAYOUT_CONFIG, "current")


@dataclass
class DerivedFigures:
    month: str
    revenue: float
    total_expenses: float
    shipping_cost: float
    order_count: int

    @property
    def dpp(self) -> float:
        return self.revenue - self.total_expenses - self.shipping_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "revenue": round(self.revenue, 2),
            "total_expenses": round(self.total_expenses, 2),
            "shipping_cost": round(self.shipping_cost, 2),
            "dpp": round(self.dpp, 2),
            "order_count": self.order_count,
        }


def cached_stored_records(cache: QueryCache, month: str) -> List[Any]:
    """
    Stored shipping records that bear on `month`, once each by id.

    The month's own bucket first, then other cached months, then the
    shadowing records served with the month's ledger.
    """
    keys = [(SHIPPING_RECORDS, month)]
    keys += [k for k in cache.keys(SHIPPING_RECORDS) if k[1] != month]
    keys.append((SHIPPING_SHADOWS, month))

    records: Dict[str, Any] = {}
    for key in keys:
        for record in cache.get(key) or []:
            records.setdefault(record.id, record)
    return list(records.values())


def recompute_figures(
    cache: QueryCache,
    month: str,
    scooter_default_charge: float = DEFAULT_SCOOTER_CHARGE,
) -> DerivedFigures:
    """Revenue, expenses, shipping cost and DPP from what is cached for `month`."""
    orders = cache.get((ORDERS, month)) or []
    expenses = cache.get((EXPENSES, month)) or []
    records = cached_stored_records(cache, month)

    revenue_orders = paid_orders(orders, MonthRange.for_month(month))
    ledger = merge_shipping_records(records, orders, month, scooter_default_charge)

    return DerivedFigures(
        month=month,
        revenue=sum(o.total_price for o in revenue_orders),
        total_expenses=sum(e.amount for e in expenses if e.month == month),
        shipping_cost=sum(r.actual_shipping_cost for r in ledger),
        order_count=len(revenue_orders),
    )


def recompute_payout(
    cache: QueryCache,
    month: str,
    config: Optional[PayoutConfig] = None,
    scooter_default_charge: float = DEFAULT_SCOOTER_CHARGE,
) -> PayoutBreakdown:
    """Payout split of the freshly derived DPP."""
    config = config or cache.get(PAYOUT_CONFIG_KEY) or PayoutConfig()
    figures = recompute_figures(cache, month, scooter_default_charge)
    return compute_payout(figures.dpp, config)


def expense_trend(cache: QueryCache, month: str, months: int = 6) -> List[Dict[str, Any]]:
    """
    Expense totals for the `months` months ending at `month`, oldest first.

    Months that are not cached report loaded=False and zero totals.
    """
    trend = []
    for offset in range(months - 1, -1, -1):
        key_month = shift_month(month, -offset)
        cached = cache.get((EXPENSES, key_month))
        expenses = cached or []
        operating = sum(e.amount for e in expenses if e.expense_type == ExpenseType.OPERATING)
        production = sum(e.amount for e in expenses if e.expense_type == ExpenseType.PRODUCTION)
        trend.append({
            "month": key_month,
            "operating": round(operating, 2),
            "production": round(production, 2),
            "total": round(operating + production, 2),
            "loaded": cached is not None,
        })
    return trend
