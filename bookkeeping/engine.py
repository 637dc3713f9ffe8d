"""
Reconciliation engine.

Fetches orders from the order source, reads the bookkeeping records from the
store, runs the pure calculators and stores the monthly snapshots.

Usage:
    store = await get_store()
    engine = ProfitEngine(store, get_order_source())

    profit = await engine.calculate_profit("2025-03")
    payout = await engine.calculate_payouts("2025-03")
"""
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Protocol, Tuple

from bookkeeping.aggregator import (
    OrderRow,
    RevenueReport,
    cancelled_shipping_orders,
    order_rows,
    paid_orders,
    revenue_report,
)
from bookkeeping.config import AppConfig, config as default_config
from bookkeeping.exceptions import NotFoundError
from bookkeeping.expense_ledger import CategoryShare, bulk_rows, expense_breakdown, parse_bulk_expenses
from bookkeeping.margins import compute_margins, filter_margins, sort_margins
from bookkeeping.models import FinancialExpense, MonthlyPayout, MonthlyProfit, Order, ProductMargin, ShippingRecord
from bookkeeping.observability import Timer, get_logger, month_context
from bookkeeping.payouts import build_monthly_payout
from bookkeeping.periods import MonthRange, months_between
from bookkeeping.profit import compute_monthly_profit
from bookkeeping.shipping_ledger import (
    ShippingPerformance,
    merge_shipping_records,
    shadowing_records,
    shipping_performance,
)
from bookkeeping.store import LedgerStore

logger = get_logger(__name__)

# Payout snapshots older than their profit snapshot are recomputed on read
DPP_TOLERANCE = 0.01


class OrderSource(Protocol):
    async def get_orders(
        self,
        created_at_min: Optional[datetime] = None,
        created_at_max: Optional[datetime] = None,
    ) -> List[Order]:
        ...


class ProfitEngine:
    """Month-level operations behind the financial API."""

    def __init__(self, store: LedgerStore, order_source: OrderSource, app_config: AppConfig = None):
        self.store = store
        self.order_source = order_source
        self.config = app_config or default_config

    @property
    def scooter_default_charge(self) -> float:
        return self.config.finance.scooter_default_charge

    async def fetch_orders(self, start: date) -> List[Order]:
        """
        Orders that may be dated on or after `start`.

        Bucketing is by tag dates, not created_at, so the window opens
        `order_lookback_days` before `start` and has no upper bound.
        """
        lookback = timedelta(days=self.config.shopify.order_lookback_days)
        created_min = datetime.combine(start - lookback, time.min)

        with Timer("fetch_orders", logger):
            return await self.order_source.get_orders(created_at_min=created_min)

    async def _month_orders(self, month: str) -> List[Order]:
        return await self.fetch_orders(MonthRange.for_month(month).start)

    # ═══════════════════════════════════════════════════════════════════════════
    # PROFIT
    # ═══════════════════════════════════════════════════════════════════════════

    async def calculate_profit(self, month: str) -> MonthlyProfit:
        """Recalculate the month and overwrite its stored snapshot."""
        with month_context(month):
            orders = await self._month_orders(month)
            expenses = await self.store.list_expenses(month=month)
            records = await self.store.list_shipping_records()
            product_costs = await self.store.list_product_costs()

            profit = compute_monthly_profit(
                month,
                orders,
                expenses,
                records,
                product_costs,
                flyer_cost=self.config.finance.flyer_cost_per_order,
                scooter_default_charge=self.scooter_default_charge,
            )
            return await self.store.save_monthly_profit(profit)

    async def get_monthly_profit(self, month: str) -> Optional[MonthlyProfit]:
        """Stored snapshot; None when the month was never calculated."""
        return await self.store.get_monthly_profit(month)

    async def get_profit_summary(self, start_month: str, end_month: str) -> Dict[str, Any]:
        """
        Stored snapshots across a month range with totals.

        Months that were never calculated are listed in `missing_months`
        rather than reported as zero.
        """
        profits = await self.store.list_monthly_profits(start_month, end_month)
        stored = {p.month for p in profits}
        missing = [m for m in months_between(start_month, end_month) if m not in stored]

        totals = {
            name: round(sum(getattr(p, name) for p in profits), 2)
            for name in ("revenue", "cogs", "total_expenses", "shipping_cost", "dpp", "cash_dpp")
        }
        totals["order_count"] = sum(p.order_count for p in profits)

        return {
            "start_month": start_month,
            "end_month": end_month,
            "months": [p.to_dict() for p in profits],
            "missing_months": missing,
            "totals": totals,
        }

    async def orders_for_month(self, month: str) -> List[Order]:
        """Orders that touch the month's statement: paid orders and cancelled ones with a shipping cost."""
        orders = await self._month_orders(month)
        period = MonthRange.for_month(month)
        return paid_orders(orders, period) + cancelled_shipping_orders(orders, period)

    async def order_rows(self, month: str) -> List[OrderRow]:
        orders = await self._month_orders(month)
        return order_rows(orders, month)

    # ═══════════════════════════════════════════════════════════════════════════
    # SHIPPING
    # ═══════════════════════════════════════════════════════════════════════════

    async def shipping_ledger(self, month: str) -> List[ShippingRecord]:
        """Stored and tag-derived shipping records of the month, newest first."""
        records, _ = await self.shipping_ledger_with_shadows(month)
        return records

    async def shipping_ledger_with_shadows(self, month: str) -> Tuple[List[ShippingRecord], List[ShippingRecord]]:
        """
        The month's ledger plus the stored records from other months that
        shadow its tag-derived records.
        """
        orders = await self._month_orders(month)
        stored = await self.store.list_shipping_records()
        return (
            merge_shipping_records(stored, orders, month, self.scooter_default_charge),
            shadowing_records(stored, orders, month, self.scooter_default_charge),
        )

    async def shipping_performance(self, month: str) -> ShippingPerformance:
        return shipping_performance(await self.shipping_ledger(month))

    # ═══════════════════════════════════════════════════════════════════════════
    # PAYOUTS
    # ═══════════════════════════════════════════════════════════════════════════

    async def calculate_payouts(self, month: str) -> MonthlyPayout:
        """
        Split the month's stored DPP and store the payout snapshot.

        Raises:
            NotFoundError: the month has no profit snapshot yet
        """
        profit = await self.store.get_monthly_profit(month)
        if profit is None:
            raise NotFoundError("monthly profit", month, f"calculate profit for {month} first")

        payout_config = await self.store.get_payout_config()
        with month_context(month):
            payout = build_monthly_payout(profit, payout_config)
            logger.info(f"Payouts for {month}: dpp={payout.dpp:.2f} net={payout.net_business_profit:.2f}")
        return await self.store.save_monthly_payout(payout)

    async def get_monthly_payout(self, month: str) -> Optional[MonthlyPayout]:
        """
        Stored payout snapshot.

        Recomputed when the profit snapshot was recalculated after the payout
        was stored (their DPP figures disagree).
        """
        payout = await self.store.get_monthly_payout(month)
        if payout is None:
            return None

        profit = await self.store.get_monthly_profit(month)
        if profit is not None and abs(profit.cash_dpp - payout.dpp) > DPP_TOLERANCE:
            logger.info(f"Payout snapshot for {month} is stale, recalculating")
            return await self.calculate_payouts(month)
        return payout

    # ═══════════════════════════════════════════════════════════════════════════
    # EXPENSES & ANALYSIS
    # ═══════════════════════════════════════════════════════════════════════════

    async def import_expenses(self, text: str) -> Tuple[List[FinancialExpense], int]:
        """Bulk-import pasted rows. Returns (created expenses, dropped row count)."""
        drafts = parse_bulk_expenses(text)
        created = await self.store.add_expenses(drafts)
        return created, len(bulk_rows(text)) - len(drafts)

    async def expense_breakdown(self, month: str) -> List[CategoryShare]:
        """Category totals as a share of the month's stored revenue (0 % when not calculated)."""
        expenses = await self.store.list_expenses(month=month)
        profit = await self.store.get_monthly_profit(month)
        return expense_breakdown(expenses, profit.revenue if profit else 0.0)

    async def product_margins(
        self,
        month: str,
        search: Optional[str] = None,
        min_margin: Optional[float] = None,
        max_margin: Optional[float] = None,
        sort_by: str = "margin_percent",
        descending: bool = True,
    ) -> List[ProductMargin]:
        orders = await self._month_orders(month)
        product_costs = await self.store.list_product_costs()
        margins = compute_margins(month, orders, product_costs)
        return sort_margins(filter_margins(margins, search, min_margin, max_margin), sort_by, descending)

    async def revenue_report(self, start: date, end: date) -> RevenueReport:
        orders = await self.fetch_orders(start)
        return revenue_report(orders, start, end)
