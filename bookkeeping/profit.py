"""
Monthly profit statement.

compute_monthly_profit() is a pure function of the month's inputs; calling
it twice with the same inputs returns equal statements. Persisting the result
overwrites the stored snapshot for the month.

    revenue          paid, non-cancelled orders by paid_date
    shipping_cost    merged shipping ledger (stored records shadow tag records)
    cogs             unit cost x quantity of matched line items (+ flyer per order)
    total_expenses   all expenses dated in the month (production + operating)
    dpp              revenue - total_expenses - shipping_cost
    cash_dpp         revenue - production_costs_paid - operating_expenses - shipping_cost
"""
from typing import Dict, Iterable, List, Optional

from bookkeeping.aggregator import aggregate, cancelled_shipping_orders, paid_orders
from bookkeeping.expense_ledger import total_by_type
from bookkeeping.models import (
    ExpenseType,
    FinancialExpense,
    LineItem,
    MonthlyProfit,
    Order,
    ProductCost,
    ShippingRecord,
)
from bookkeeping.observability import get_logger
from bookkeeping.periods import PAID_DATE, MonthRange
from bookkeeping.shipping_ledger import DEFAULT_SCOOTER_CHARGE, merge_shipping_records

logger = get_logger(__name__)


def index_product_costs(product_costs: Iterable[ProductCost]) -> Dict[str, ProductCost]:
    """product_id -> ProductCost; the first record wins on duplicates."""
    index: Dict[str, ProductCost] = {}
    for cost in product_costs:
        index.setdefault(str(cost.product_id), cost)
    return index


def unit_cost_for(item: LineItem, costs: Dict[str, ProductCost]) -> Optional[ProductCost]:
    """Cost record for a line item by product id, then variant id."""
    for key in (item.product_id, item.variant_id):
        if key and key in costs:
            return costs[key]
    return None


def compute_cogs(orders: Iterable[Order], product_costs: Iterable[ProductCost], flyer_cost: float = 0.0) -> float:
    costs = index_product_costs(product_costs)
    cogs = 0.0
    for order in orders:
        for item in order.line_items:
            cost = unit_cost_for(item, costs)
            if cost is not None:
                cogs += cost.total_unit_cost * item.quantity
        cogs += flyer_cost
    return cogs


def compute_monthly_profit(
    month: str,
    orders: Iterable[Order],
    expenses: Iterable[FinancialExpense],
    shipping_records: Iterable[ShippingRecord],
    product_costs: Iterable[ProductCost],
    flyer_cost: float = 0.0,
    scooter_default_charge: float = DEFAULT_SCOOTER_CHARGE,
) -> MonthlyProfit:
    """
    Build the statement for `month`.

    `expenses` and `shipping_records` may contain other months; they are
    filtered by their own date. A month with no data yields a zero statement.
    """
    orders = list(orders)
    period = MonthRange.for_month(month)

    totals = aggregate(orders, period, PAID_DATE)
    revenue_orders = paid_orders(orders, period)
    cancelled = cancelled_shipping_orders(orders, period)

    ledger = merge_shipping_records(shipping_records, orders, month, scooter_default_charge)
    shipping_cost = sum(r.actual_shipping_cost for r in ledger)
    shipping_charged = sum(r.customer_shipping_charged for r in ledger)

    cogs = compute_cogs(revenue_orders, product_costs, flyer_cost)

    month_expenses: List[FinancialExpense] = [e for e in expenses if e.month == month]
    by_type = total_by_type(month_expenses)
    operating = by_type[ExpenseType.OPERATING.value]
    production_paid = by_type[ExpenseType.PRODUCTION.value]
    total_expenses = sum(e.amount for e in month_expenses)

    revenue = totals.revenue
    gross_profit = revenue - cogs

    profit = MonthlyProfit(
        month=month,
        revenue=revenue,
        cogs=cogs,
        gross_profit=gross_profit,
        total_expenses=total_expenses,
        operating_expenses=operating,
        production_costs_paid=production_paid,
        shipping_cost=shipping_cost,
        customer_shipping_charged=shipping_charged,
        shipping_loss=shipping_charged - shipping_cost,
        operating_profit=gross_profit - operating - shipping_cost,
        dpp=revenue - total_expenses - shipping_cost,
        cash_dpp=revenue - production_paid - operating - shipping_cost,
        order_count=len(revenue_orders),
        cancelled_count=len(cancelled),
    )

    logger.info(
        f"Profit for {month}: revenue={revenue:.2f} expenses={total_expenses:.2f} "
        f"shipping={shipping_cost:.2f} dpp={profit.dpp:.2f}"
    )
    return profit
