"""
Shipping ledger: tag-derived (virtual) records merged with stored ones.

Every paid or cancelled order with a shipping cost tag yields a virtual
record on read. A stored record that references the same order (by Shopify id
or order number) shadows it, so one shipment is never counted twice.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Any

from bookkeeping.aggregator import cancelled_shipping_orders, paid_orders
from bookkeeping.models import Order, ShippingRecord, ShippingStatus, ShippingType
from bookkeeping.observability import get_logger
from bookkeeping.periods import CANCELLED_SHIPPING, PAID_DATE, MonthRange, OrderDateSource
from bookkeeping.tags import CARRIER_COMPANY, CARRIER_UBER, extract_shipping_cost, shipping_carrier

logger = get_logger(__name__)

DEFAULT_SCOOTER_CHARGE = 50.0


def normalize_order_ref(ref: Optional[str]) -> Optional[str]:
    """"#1120 " -> "1120"."""
    if ref is None:
        return None
    cleaned = str(ref).strip().lstrip("#").strip()
    return cleaned or None


def _virtual_record(
    order: Order,
    policy: OrderDateSource,
    cancelled: bool,
    scooter_default_charge: float,
) -> Optional[ShippingRecord]:
    cost = extract_shipping_cost(order.tags)
    if cost <= 0:
        return None

    carrier = shipping_carrier(order.tags) or CARRIER_COMPANY
    if cancelled:
        charged = 0.0
        record_id = f"tag-cancelled-{order.id}"
    else:
        if order.has_shipping_lines:
            charged = order.shipping_charged
        else:
            charged = scooter_default_charge if carrier == CARRIER_UBER else 0.0
        record_id = f"tag-scooter-{order.id}" if carrier == CARRIER_UBER else f"tag-{order.id}"

    number = order.number
    return ShippingRecord(
        id=record_id,
        order_id=str(number) if number is not None else order.id,
        type=ShippingType(carrier),
        customer_shipping_charged=charged,
        actual_shipping_cost=cost,
        status=ShippingStatus.CANCELLED if cancelled else ShippingStatus.DELIVERED,
        date=(policy.resolve(order.tags) or "")[:10],
        notes=f"From order tags ({order.name})",
        is_from_tag=True,
        created_at=order.created_at,
    )


def _virtual_pairs(
    orders: Iterable[Order],
    month: str,
    scooter_default_charge: float,
) -> List[Tuple[Order, ShippingRecord]]:
    orders = list(orders)
    period = MonthRange.for_month(month)
    pairs = []
    for order in paid_orders(orders, period):
        record = _virtual_record(order, PAID_DATE, False, scooter_default_charge)
        if record:
            pairs.append((order, record))
    for order in cancelled_shipping_orders(orders, period):
        record = _virtual_record(order, CANCELLED_SHIPPING, True, scooter_default_charge)
        if record:
            pairs.append((order, record))
    return pairs


def virtual_records(
    orders: Iterable[Order],
    month: str,
    scooter_default_charge: float = DEFAULT_SCOOTER_CHARGE,
) -> List[ShippingRecord]:
    """Shipping records synthesized from the month's order tags."""
    return [record for _, record in _virtual_pairs(orders, month, scooter_default_charge)]


def sort_records(records: Iterable[ShippingRecord]) -> List[ShippingRecord]:
    return sorted(records, key=lambda r: (r.date, r.created_at or ""), reverse=True)


def merge_shipping_records(
    persisted: Iterable[ShippingRecord],
    orders: Iterable[Order],
    month: str,
    scooter_default_charge: float = DEFAULT_SCOOTER_CHARGE,
) -> List[ShippingRecord]:
    """
    One logical ledger for `month`.

    `persisted` may span several months: any stored record referencing an
    order shadows that order's virtual record, but only records dated in
    `month` appear in the result.
    """
    stored = [r for r in persisted if not r.is_from_tag]
    refs = {normalize_order_ref(r.order_id) for r in stored if r.order_id}
    refs.discard(None)

    merged = [r for r in stored if r.month == month]
    shadowed = 0
    for order, record in _virtual_pairs(orders, month, scooter_default_charge):
        if refs.intersection(order.identity_keys):
            shadowed += 1
            continue
        merged.append(record)

    if shadowed:
        logger.debug(f"{shadowed} tag-derived shipping records shadowed by stored records for {month}")
    return sort_records(merged)


def shadowing_records(
    persisted: Iterable[ShippingRecord],
    orders: Iterable[Order],
    month: str,
    scooter_default_charge: float = DEFAULT_SCOOTER_CHARGE,
) -> List[ShippingRecord]:
    """
    Stored records dated outside `month` that shadow one of its virtual records.

    Served next to the month's ledger so a client holding only that month
    merges exactly like the server does.
    """
    keys = set()
    for order, _ in _virtual_pairs(orders, month, scooter_default_charge):
        keys.update(order.identity_keys)
    return sort_records(
        r for r in persisted
        if not r.is_from_tag and r.month != month and normalize_order_ref(r.order_id) in keys
    )


# ═══════════════════════════════════════════════════════════════════════════════
# PERFORMANCE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class CarrierStats:
    count: int = 0
    charged: float = 0.0
    cost: float = 0.0

    @property
    def profit_loss(self) -> float:
        return self.charged - self.cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "charged": round(self.charged, 2),
            "cost": round(self.cost, 2),
            "profit_loss": round(self.profit_loss, 2),
        }


@dataclass
class ShippingPerformance:
    """Shipping profit/loss per carrier plus losses on cancelled orders."""
    by_type: Dict[str, CarrierStats] = field(default_factory=dict)
    cancelled_count: int = 0
    cancelled_loss: float = 0.0

    @property
    def total_charged(self) -> float:
        return sum(s.charged for s in self.by_type.values())

    @property
    def total_cost(self) -> float:
        return sum(s.cost for s in self.by_type.values())

    @property
    def profit_loss(self) -> float:
        return self.total_charged - self.total_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "by_type": {t: s.to_dict() for t, s in self.by_type.items()},
            "total_charged": round(self.total_charged, 2),
            "total_cost": round(self.total_cost, 2),
            "profit_loss": round(self.profit_loss, 2),
            "cancelled_count": self.cancelled_count,
            "cancelled_loss": round(self.cancelled_loss, 2),
        }


def shipping_performance(records: Iterable[ShippingRecord]) -> ShippingPerformance:
    performance = ShippingPerformance(by_type={t.value: CarrierStats() for t in ShippingType})
    for record in records:
        stats = performance.by_type[record.type.value]
        stats.count += 1
        stats.charged += record.customer_shipping_charged
        stats.cost += record.actual_shipping_cost
        if record.status == ShippingStatus.CANCELLED:
            performance.cancelled_count += 1
            performance.cancelled_loss += record.actual_shipping_cost
    return performance
