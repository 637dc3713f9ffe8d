"""
Order tag parsing.

Shopify orders carry their financial state as free-text tags:

    fulfilled, paid, cancelled                 presence flags
    fulfillment_date:2025-03-15                month bucketing dates
    paid_date:2025-03-15
    scooter_shipping_cost:50                   actual carrier cost
    shipping_company_cost:62.70
    shipping_company_cost_date:2025-03-16      when the courier cost was booked
    shipping_method:scooter                    carrier hint

Tag data is dirty legacy input: nothing in this module raises on malformed
values. Unparseable amounts read as 0 and missing tags read as None.
"""
import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

FULFILLED = "fulfilled"
PAID = "paid"
CANCELLED = "cancelled"

FULFILLMENT_DATE = "fulfillment_date:"
PAID_DATE = "paid_date:"
SCOOTER_SHIPPING_COST = "scooter_shipping_cost:"
SHIPPING_COMPANY_COST = "shipping_company_cost:"
SHIPPING_COMPANY_COST_DATE = "shipping_company_cost_date:"
SHIPPING_METHOD = "shipping_method:"

# Carrier values, equal to models.ShippingType values
CARRIER_UBER = "Uber"
CARRIER_COMPANY = "Company"

_LEADING_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def parse_tags(raw: Union[str, Iterable[str], None]) -> List[str]:
    """
    Normalize a tag field into an ordered list of trimmed tags.

    Accepts a comma-joined string or an already split list. Empty tags and
    exact duplicates are dropped; first occurrence order is kept.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        parts = raw.split(",")
    else:
        parts = list(raw)

    tags: List[str] = []
    seen = set()
    for part in parts:
        if part is None:
            continue
        tag = str(part).strip()
        if tag and tag not in seen:
            seen.add(tag)
            tags.append(tag)
    return tags


def extract_tag_value(tags: Iterable[str], prefix: str) -> Optional[str]:
    """
    Return the value of the first `name:value` tag whose name matches `prefix`.

    `prefix` is given with its colon (e.g. "paid_date:"). Whitespace around the
    name, the colon and the value is ignored; the value is everything after the
    first colon, so ISO timestamps survive intact.
    """
    wanted = prefix.rstrip(":").strip()
    for tag in tags:
        name, sep, value = str(tag).partition(":")
        if sep and name.strip() == wanted:
            return value.strip()
    return None


def has_flag(tags: Iterable[str], name: str) -> bool:
    """Case- and whitespace-insensitive presence check for a flag tag."""
    target = name.strip().lower()
    return any(str(tag).strip().lower() == target for tag in tags)


def leading_number(value) -> Optional[float]:
    """Leading finite number of a value ("50 EGP" -> 50.0), or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value).strip())
        if not match:
            return None
        number = float(match.group(0))
    return number if math.isfinite(number) else None


def parse_amount(value) -> float:
    """Lenient decimal parse: anything unparseable or non-finite reads as 0.0."""
    number = leading_number(value)
    return 0.0 if number is None else number


def extract_shipping_cost(tags: Iterable[str]) -> float:
    """
    Actual carrier cost recorded on an order.

    The scooter tag always wins over the company tag when present, even if its
    value is malformed (then the cost is 0). Historic orders rely on this.
    """
    tags = list(tags)
    value = extract_tag_value(tags, SCOOTER_SHIPPING_COST)
    if value is None:
        value = extract_tag_value(tags, SHIPPING_COMPANY_COST)
    if value is None:
        return 0.0
    return parse_amount(value)


def shipping_carrier(tags: Iterable[str]) -> Optional[str]:
    """Carrier that delivered the order: "Uber" (scooter), "Company", or None."""
    tags = list(tags)
    method = extract_tag_value(tags, SHIPPING_METHOD)
    if extract_tag_value(tags, SCOOTER_SHIPPING_COST) is not None:
        return CARRIER_UBER
    if method and "scooter" in method.lower():
        return CARRIER_UBER
    if extract_tag_value(tags, SHIPPING_COMPANY_COST) is not None:
        return CARRIER_COMPANY
    return None


@dataclass(frozen=True)
class OrderTags:
    """Structured facts read from one order's tags."""
    fulfilled: bool
    paid: bool
    cancelled: bool
    fulfillment_date: Optional[str]
    paid_date: Optional[str]
    shipping_cost: float
    carrier: Optional[str]


def read_tags(raw: Union[str, Iterable[str], None]) -> OrderTags:
    tags = parse_tags(raw)
    return OrderTags(
        fulfilled=has_flag(tags, FULFILLED),
        paid=has_flag(tags, PAID),
        cancelled=has_flag(tags, CANCELLED),
        fulfillment_date=extract_tag_value(tags, FULFILLMENT_DATE),
        paid_date=extract_tag_value(tags, PAID_DATE),
        shipping_cost=extract_shipping_cost(tags),
        carrier=shipping_carrier(tags),
    )
