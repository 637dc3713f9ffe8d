"""
Revenue and shipping aggregation over tagged orders.

Two figures for shipping are kept apart on purpose:

    shipping_cost            actual carrier cost read from order tags
    expected_shipping_cost   fixed per-zone tariff, used by the Revenue tab

Usage:
    from bookkeeping.aggregator import aggregate, revenue_report
    from bookkeeping.periods import MonthRange, PAID_DATE

    result = aggregate(orders, MonthRange.for_month("2025-03"), PAID_DATE)
    print(result.revenue, result.shipping_cost)
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Any, Tuple

from bookkeeping.models import Order
from bookkeeping.observability import get_logger
from bookkeeping.periods import (
    CANCELLED_SHIPPING,
    FULFILLMENT_DATE,
    PAID_DATE,
    MonthRange,
    OrderDateSource,
    parse_iso_date,
)
from bookkeeping.tags import CANCELLED, extract_shipping_cost, has_flag, shipping_carrier

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# SHIPPING ZONES
# ═══════════════════════════════════════════════════════════════════════════════

DEFAULT_ZONE = "Beyond"

# Evaluated in order, first match wins
ZONE_RULES: List[Tuple[str, Tuple[str, ...]]] = [
    ("Greater Cairo", ("cairo", "giza")),
    ("Alexandria", ("alexandria", "alex")),
    ("Delta", ("mansoura", "tanta", "damanhour", "kafr el sheikh", "damietta")),
    ("Canal", ("port said", "ismailia", "suez")),
    ("Upper Egypt", ("aswan", "luxor", "hurghada", "sharm")),
]

# Courier tariff per order (EGP)
ZONE_SHIPPING_COSTS: Dict[str, float] = {
    "Greater Cairo": 62.70,
    "Giza": 62.70,
    "Alexandria": 68.40,
    "Delta": 74.10,
    "Canal": 79.80,
    "Upper Egypt": 96.90,
    "Red Sea": 96.90,
    "Beyond": 148.20,
}


def classify_zone(city: Optional[str]) -> str:
    """Shipping zone for a city name (case-insensitive substring rules)."""
    lowered = (city or "").lower()
    for zone, needles in ZONE_RULES:
        if any(needle in lowered for needle in needles):
            return zone
    return DEFAULT_ZONE


def expected_shipping_cost(zone: str) -> float:
    return ZONE_SHIPPING_COSTS.get(zone, ZONE_SHIPPING_COSTS[DEFAULT_ZONE])


# ═══════════════════════════════════════════════════════════════════════════════
# AGGREGATION RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ZoneStats:
    """Orders, revenue and expected tariff for one shipping zone."""
    orders: int = 0
    revenue: float = 0.0
    shipping_cost: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orders": self.orders,
            "revenue": round(self.revenue, 2),
            "shipping_cost": round(self.shipping_cost, 2),
        }


@dataclass
class AggregateResult:
    """Totals for the orders a date policy admits into a period."""
    revenue: float = 0.0
    shipping_cost: float = 0.0
    shipping_charged_to_customer: float = 0.0
    expected_shipping_cost: float = 0.0
    order_count: int = 0
    cancelled_count: int = 0
    zone_breakdown: Dict[str, ZoneStats] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "revenue": round(self.revenue, 2),
            "shipping_cost": round(self.shipping_cost, 2),
            "shipping_charged_to_customer": round(self.shipping_charged_to_customer, 2),
            "expected_shipping_cost": round(self.expected_shipping_cost, 2),
            "order_count": self.order_count,
            "cancelled_count": self.cancelled_count,
            "zone_breakdown": {z: s.to_dict() for z, s in self.zone_breakdown.items()},
        }


@dataclass
class RevenueReport:
    """Revenue tab figures (fulfillment-date pipeline, zone tariffs)."""
    start_date: date
    end_date: date
    total_revenue: float
    total_shipping_cost: float
    order_count: int
    zone_breakdown: Dict[str, ZoneStats]

    @property
    def net_revenue(self) -> float:
        return self.total_revenue - self.total_shipping_cost

    @property
    def average_order_value(self) -> float:
        return self.total_revenue / self.order_count if self.order_count else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_revenue": round(self.total_revenue, 2),
            "total_shipping_cost": round(self.total_shipping_cost, 2),
            "net_revenue": round(self.net_revenue, 2),
            "order_count": self.order_count,
            "average_order_value": round(self.average_order_value, 2),
            "zone_breakdown": {z: s.to_dict() for z, s in self.zone_breakdown.items()},
        }


@dataclass
class OrderRow:
    """One line of the month's order listing with its net contribution."""
    order_id: str
    name: str
    date: str
    created_at: Optional[str]
    cancelled: bool
    revenue: float
    shipping_cost: float
    carrier: Optional[str] = None
    customer_name: Optional[str] = None

    @property
    def net(self) -> float:
        return self.revenue - self.shipping_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "name": self.name,
            "date": self.date,
            "created_at": self.created_at,
            "status": "cancelled" if self.cancelled else "paid",
            "revenue": round(self.revenue, 2),
            "shipping_cost": round(self.shipping_cost, 2),
            "net": round(self.net, 2),
            "carrier": self.carrier,
            "customer_name": self.customer_name,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# SELECTION
# ═══════════════════════════════════════════════════════════════════════════════

def is_cancelled(order: Order) -> bool:
    return has_flag(order.tags, CANCELLED)


def select_orders(orders: Iterable[Order], period: MonthRange, policy: OrderDateSource) -> List[Order]:
    """Orders whose policy date falls inside the period (cancelled included)."""
    return [o for o in orders if policy.admits(o.tags, period)]


def paid_orders(orders: Iterable[Order], period: MonthRange) -> List[Order]:
    """Revenue-bearing orders: paid, paid_date in period, not cancelled."""
    return [o for o in select_orders(orders, period, PAID_DATE) if not is_cancelled(o)]


def cancelled_shipping_orders(orders: Iterable[Order], period: MonthRange) -> List[Order]:
    """Cancelled orders that still cost the business a shipment in the period."""
    return [
        o for o in select_orders(orders, period, CANCELLED_SHIPPING)
        if extract_shipping_cost(o.tags) > 0
    ]


def sort_orders(orders: Iterable[Order], policy: OrderDateSource) -> List[Order]:
    """Newest first: policy date descending, then created_at descending."""
    def key(order: Order):
        resolved = parse_iso_date(policy.resolve(order.tags)) or date.min
        return (resolved, order.created_at or "")

    return sorted(orders, key=key, reverse=True)


# ═══════════════════════════════════════════════════════════════════════════════
# AGGREGATION
# ═══════════════════════════════════════════════════════════════════════════════

def aggregate(
    orders: Iterable[Order],
    period: MonthRange,
    policy: OrderDateSource = PAID_DATE,
) -> AggregateResult:
    """
    Sum revenue and shipping for the orders `policy` admits into `period`.

    Cancelled orders add no revenue but still add their actual shipping cost.
    """
    result = AggregateResult()

    for order in select_orders(orders, period, policy):
        result.shipping_cost += extract_shipping_cost(order.tags)

        if is_cancelled(order):
            result.cancelled_count += 1
            continue

        result.order_count += 1
        result.revenue += order.total_price
        result.shipping_charged_to_customer += order.shipping_charged

        zone = classify_zone(order.city)
        tariff = expected_shipping_cost(zone)
        stats = result.zone_breakdown.setdefault(zone, ZoneStats())
        stats.orders += 1
        stats.revenue += order.total_price
        stats.shipping_cost += tariff
        result.expected_shipping_cost += tariff

    logger.debug(
        f"Aggregated {result.order_count} orders ({result.cancelled_count} cancelled) "
        f"with {policy.name} for {period.start}..{period.end}"
    )
    return result


def revenue_report(orders: Iterable[Order], start: date, end: date) -> RevenueReport:
    """Revenue tab: fulfilled orders by fulfillment_date, costed by zone tariff."""
    result = aggregate(orders, MonthRange(start, end), FULFILLMENT_DATE)
    return RevenueReport(
        start_date=start,
        end_date=end,
        total_revenue=result.revenue,
        total_shipping_cost=result.expected_shipping_cost,
        order_count=result.order_count,
        zone_breakdown=result.zone_breakdown,
    )


def order_rows(orders: Iterable[Order], month: str) -> List[OrderRow]:
    """
    The month's paid orders plus cancelled orders with a shipping cost.

    Cancelled rows carry zero revenue, so their net is the negative cost.
    """
    orders = list(orders)
    period = MonthRange.for_month(month)
    rows = []

    for order in paid_orders(orders, period):
        rows.append(_row(order, PAID_DATE, cancelled=False))
    for order in cancelled_shipping_orders(orders, period):
        rows.append(_row(order, CANCELLED_SHIPPING, cancelled=True))

    rows.sort(key=lambda r: (parse_iso_date(r.date) or date.min, r.created_at or ""), reverse=True)
    return rows


def _row(order: Order, policy: OrderDateSource, cancelled: bool) -> OrderRow:
    return OrderRow(
        order_id=order.id,
        name=order.name,
        date=(policy.resolve(order.tags) or "")[:10],
        created_at=order.created_at,
        cancelled=cancelled,
        revenue=0.0 if cancelled else order.total_price,
        shipping_cost=extract_shipping_cost(order.tags),
        carrier=shipping_carrier(order.tags),
        customer_name=order.customer_name,
    )
