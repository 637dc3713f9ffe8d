"""
Per-product margins for a month's paid orders.

Only orders tagged paid, not cancelled, with a paid_date inside the month
count. There is no fallback to fulfillment_date or created_at here.
"""
from typing import Dict, Iterable, List, Optional

from bookkeeping.aggregator import paid_orders
from bookkeeping.models import LineItem, Order, ProductCost, ProductMargin
from bookkeeping.observability import get_logger
from bookkeeping.periods import MonthRange

logger = get_logger(__name__)

SORT_KEYS = {
    "product_name", "cost_per_unit", "average_selling_price", "margin_percent",
    "units_sold", "total_revenue", "total_cost", "profit",
}


def match_product_cost(item: LineItem, product_costs: List[ProductCost]) -> Optional[ProductCost]:
    """
    Cost record for a line item.

    Exact product id, then variant id; otherwise the first product whose name
    contains the item title or is contained in it (case-insensitive).
    """
    for key in (item.product_id, item.variant_id):
        if not key:
            continue
        for cost in product_costs:
            if cost.product_id == key:
                return cost

    title = (item.title or "").strip().lower()
    if not title:
        return None
    for cost in product_costs:
        name = (cost.product_name or "").strip().lower()
        if name and (name in title or title in name):
            return cost
    return None


def margin_percent(average_selling_price: float, cost_per_unit: float) -> float:
    if average_selling_price == 0:
        return 0.0
    return (average_selling_price - cost_per_unit) / average_selling_price * 100


def compute_margins(
    month: str,
    orders: Iterable[Order],
    product_costs: Iterable[ProductCost],
) -> List[ProductMargin]:
    """Margins per product, in order of first sale."""
    product_costs = list(product_costs)
    period = MonthRange.for_month(month)

    units: Dict[str, int] = {}
    revenue: Dict[str, float] = {}
    matched: Dict[str, ProductCost] = {}
    skipped = 0

    for order in paid_orders(orders, period):
        for item in order.line_items:
            cost = match_product_cost(item, product_costs)
            if cost is None:
                skipped += 1
                continue
            matched.setdefault(cost.product_id, cost)
            units[cost.product_id] = units.get(cost.product_id, 0) + item.quantity
            revenue[cost.product_id] = revenue.get(cost.product_id, 0.0) + item.price * item.quantity

    if skipped:
        logger.debug(f"{skipped} line items in {month} had no product cost")

    margins = []
    for product_id, cost in matched.items():
        sold = units[product_id]
        total_revenue = revenue[product_id]
        average = total_revenue / sold if sold else 0.0
        unit_cost = cost.total_unit_cost
        margins.append(ProductMargin(
            product_id=product_id,
            product_name=cost.product_name,
            cost_per_unit=unit_cost,
            average_selling_price=average,
            margin_percent=margin_percent(average, unit_cost),
            units_sold=sold,
            total_revenue=total_revenue,
            total_cost=unit_cost * sold,
        ))
    return margins


def filter_margins(
    margins: Iterable[ProductMargin],
    search: Optional[str] = None,
    min_margin: Optional[float] = None,
    max_margin: Optional[float] = None,
) -> List[ProductMargin]:
    needle = (search or "").strip().lower()
    result = []
    for margin in margins:
        if needle and needle not in margin.product_name.lower():
            continue
        if min_margin is not None and margin.margin_percent < min_margin:
            continue
        if max_margin is not None and margin.margin_percent > max_margin:
            continue
        result.append(margin)
    return result


def sort_margins(margins: Iterable[ProductMargin], key: str = "margin_percent", descending: bool = True) -> List[ProductMargin]:
    if key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {key}")
    if key == "product_name":
        return sorted(margins, key=lambda m: m.product_name.lower(), reverse=descending)
    return sorted(margins, key=lambda m: getattr(m, key), reverse=descending)
