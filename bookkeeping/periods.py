"""
Month keys, date ranges and the order date policy.

Orders are bucketed into financial months by a dated tag, never by their
creation timestamp. Which tag a pipeline reads is an explicit policy:

    from bookkeeping.periods import PAID_DATE, MonthRange

    period = MonthRange.for_month("2025-03")
    date = PAID_DATE.resolve(order.tags)      # "2025-03-15" or None
    if date and period.contains(date):
        ...
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from bookkeeping.tags import (
    CANCELLED,
    FULFILLED,
    FULFILLMENT_DATE as FULFILLMENT_DATE_TAG,
    PAID,
    PAID_DATE as PAID_DATE_TAG,
    SHIPPING_COMPANY_COST_DATE,
    extract_tag_value,
    has_flag,
)


def month_of(value: str) -> str:
    """"2025-03-15" or "2025-03-15T10:00:00Z" -> "2025-03"."""
    return str(value)[:7]


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Date part of an ISO date or timestamp; None when unparseable."""
    if not value:
        return None
    try:
        return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def month_start(month: str) -> date:
    """"2025-03" -> date(2025, 3, 1)."""
    return datetime.strptime(month, "%Y-%m").date()


def shift_month(month: str, offset: int) -> str:
    return (month_start(month) + relativedelta(months=offset)).strftime("%Y-%m")


def months_between(start_month: str, end_month: str) -> List[str]:
    """Inclusive list of month keys from start to end."""
    first, last = month_start(start_month), month_start(end_month)
    months = []
    offset = 0
    while first + relativedelta(months=offset) <= last:
        months.append((first + relativedelta(months=offset)).strftime("%Y-%m"))
        offset += 1
    return months


@dataclass(frozen=True)
class MonthRange:
    """Inclusive date range, usually one calendar month."""
    start: date
    end: date

    @classmethod
    def for_month(cls, month: str) -> "MonthRange":
        start = month_start(month)
        return cls(start, start + relativedelta(months=1, days=-1))

    def contains(self, value: Optional[str]) -> bool:
        """Whether an ISO date/timestamp string falls inside the range."""
        parsed = parse_iso_date(value)
        if parsed is None:
            return False
        return self.start <= parsed <= self.end

    @property
    def month(self) -> str:
        return self.start.strftime("%Y-%m")


@dataclass(frozen=True)
class OrderDateSource:
    """
    Which dated tag buckets an order into a month.

    date_tag:       tag read first (e.g. "paid_date:")
    required_flag:  flag the order must carry to be considered at all
    fallback_tags:  tags tried in order when date_tag is absent

    created_at is never a fallback.
    """
    name: str
    date_tag: str
    required_flag: Optional[str] = None
    fallback_tags: Tuple[str, ...] = ()

    def resolve(self, tags: Iterable[str]) -> Optional[str]:
        """Bucketing date for an order, or None when it is excluded."""
        tags = list(tags)
        if self.required_flag and not has_flag(tags, self.required_flag):
            return None
        for prefix in (self.date_tag,) + self.fallback_tags:
            value = extract_tag_value(tags, prefix)
            if value and parse_iso_date(value) is not None:
                return value
        return None

    def admits(self, tags: Iterable[str], period: MonthRange) -> bool:
        return period.contains(self.resolve(tags))


# Profit statement and margins: paid orders bucketed strictly by paid_date
PAID_DATE = OrderDateSource("paid_date", PAID_DATE_TAG, required_flag=PAID)

# Revenue tab: fulfilled orders bucketed by fulfillment_date
FULFILLMENT_DATE = OrderDateSource("fulfillment_date", FULFILLMENT_DATE_TAG, required_flag=FULFILLED)

# Cancelled orders are bucketed by paid_date, else by when the courier cost was booked
CANCELLED_SHIPPING = OrderDateSource(
    "cancelled_shipping",
    PAID_DATE_TAG,
    required_flag=CANCELLED,
    fallback_tags=(SHIPPING_COMPANY_COST_DATE,),
)
