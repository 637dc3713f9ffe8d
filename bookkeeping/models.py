"""
Domain models for orders and bookkeeping records.

Orders are read-only Shopify data; everything else (expenses, shipping
records, product costs, payout config) is owned by this service. Derived
statements (MonthlyProfit, MonthlyPayout, ProductMargin) are recomputed on
demand and never edited by hand.

Amounts are kept as unrounded floats; rounding to 2 decimals happens only in
to_dict() for display.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any

from bookkeeping.tags import parse_amount, parse_tags


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class ExpenseCategory(str, Enum):
    """Closed set of expense categories."""
    ADS = "Ads"
    MEDIA_BUYER_FIXED = "Media Buyer Fixed"
    PACKAGING_BULK = "Packaging Bulk"
    PACKAGING = "Packaging"
    MATERIAL_SHIPPING = "Material Shipping"
    RAW_MATERIALS = "Raw Materials"
    MATERIAL_DELIVERY = "Material Delivery"
    PRODUCTION_LABOR = "Production Labor"
    TOOLS_MISC = "Tools & Misc"
    TOOLS_EQUIPMENT = "Tools & Equipment"
    UTILITIES_RENT = "Utilities & Rent"
    PROFESSIONAL_SERVICES = "Professional Services"
    OTHER = "Other"

    @classmethod
    def values(cls) -> List[str]:
        return [c.value for c in cls]


class ExpenseType(str, Enum):
    """Production costs are counted when paid (cash basis); operating costs are overhead."""
    PRODUCTION = "production"
    OPERATING = "operating"


class ShippingType(str, Enum):
    """Carrier: courier company or scooter rider (booked through Uber)."""
    COMPANY = "Company"
    UBER = "Uber"


class ShippingStatus(str, Enum):
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class OwnerPayType(str, Enum):
    FIXED = "fixed"
    PERCENT = "percent"


# ═══════════════════════════════════════════════════════════════════════════════
# ORDERS (read-only, from Shopify)
# ═══════════════════════════════════════════════════════════════════════════════

def _str_or_none(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class LineItem:
    """Product line item within an order."""
    title: str
    quantity: int
    price: float
    product_id: Optional[str] = None
    variant_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "LineItem":
        """Create LineItem from Shopify API response."""
        return cls(
            title=data.get("title") or data.get("name") or "",
            quantity=int(data.get("quantity") or 0),
            price=parse_amount(data.get("price")),
            product_id=_str_or_none(data.get("product_id")),
            variant_id=_str_or_none(data.get("variant_id")),
        )

    @property
    def total(self) -> float:
        return self.price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "quantity": self.quantity,
            "price": self.price,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
        }


@dataclass
class Order:
    """Order from Shopify. Financial state lives in `tags`, not in typed fields."""
    id: str
    name: str
    total_price: float
    created_at: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    line_items: List[LineItem] = field(default_factory=list)
    shipping_line_prices: List[float] = field(default_factory=list)
    shipping_price_total: Optional[float] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Order":
        """Create Order from a Shopify Admin API order object."""
        customer = data.get("customer") or {}
        address = data.get("shipping_address") or {}

        name_parts = [customer.get("first_name"), customer.get("last_name")]
        customer_name = " ".join(p for p in name_parts if p) or None

        shipping_price_total = None
        shop_money = ((data.get("total_shipping_price_set") or {}).get("shop_money") or {})
        if shop_money.get("amount") not in (None, ""):
            shipping_price_total = parse_amount(shop_money["amount"])

        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            total_price=parse_amount(data.get("total_price")),
            created_at=data.get("created_at"),
            tags=parse_tags(data.get("tags")),
            line_items=[LineItem.from_api(li) for li in data.get("line_items") or []],
            shipping_line_prices=[
                parse_amount(sl.get("price")) for sl in data.get("shipping_lines") or []
            ],
            shipping_price_total=shipping_price_total,
            customer_name=customer_name,
            customer_phone=customer.get("phone") or address.get("phone"),
            city=address.get("city"),
            address=address.get("address1"),
        )

    @property
    def number(self) -> Optional[int]:
        """Order number parsed from the display name ("#1120" -> 1120)."""
        digits = re.sub(r"\D", "", self.name or "")
        return int(digits) if digits else None

    @property
    def identity_keys(self) -> List[str]:
        """Identifiers a manual shipping record may use to reference this order."""
        keys = [self.id] if self.id else []
        if self.number is not None and str(self.number) not in keys:
            keys.append(str(self.number))
        return keys

    @property
    def shipping_charged(self) -> float:
        """Shipping the customer paid: shop-money total, else sum of shipping lines."""
        if self.shipping_price_total is not None:
            return self.shipping_price_total
        return sum(self.shipping_line_prices)

    @property
    def has_shipping_lines(self) -> bool:
        return self.shipping_price_total is not None or bool(self.shipping_line_prices)

    def to_dict(self) -> Dict[str, Any]:
        """Shopify-shaped dict; Order.from_api(order.to_dict()) round-trips."""
        first, _, last = (self.customer_name or "").partition(" ")
        data = {
            "id": self.id,
            "name": self.name,
            "total_price": f"{self.total_price:.2f}",
            "created_at": self.created_at,
            "tags": list(self.tags),
            "line_items": [li.to_dict() for li in self.line_items],
            "shipping_lines": [{"price": f"{p:.2f}"} for p in self.shipping_line_prices],
            "customer": {"first_name": first or None, "last_name": last or None, "phone": self.customer_phone},
            "shipping_address": {"city": self.city, "address1": self.address},
        }
        if self.shipping_price_total is not None:
            data["total_shipping_price_set"] = {
                "shop_money": {"amount": f"{self.shipping_price_total:.2f}"}
            }
        return data


# ═══════════════════════════════════════════════════════════════════════════════
# BOOKKEEPING RECORDS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class FinancialExpense:
    """Manually entered or bulk-imported expense."""
    id: str
    category: ExpenseCategory
    amount: float
    date: str
    expense_type: ExpenseType = ExpenseType.OPERATING
    notes: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[int] = None
    unit_cost: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def month(self) -> str:
        """Month bucket, always derived from the date."""
        return self.date[:7]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FinancialExpense":
        return cls(
            id=str(data["id"]),
            category=ExpenseCategory(data["category"]),
            amount=float(data.get("amount") or 0),
            date=str(data["date"])[:10],
            expense_type=ExpenseType(data.get("expense_type") or ExpenseType.OPERATING.value),
            notes=data.get("notes"),
            product_id=data.get("product_id"),
            product_name=data.get("product_name"),
            quantity=data.get("quantity"),
            unit_cost=float(data["unit_cost"]) if data.get("unit_cost") is not None else None,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "amount": round(self.amount, 2),
            "date": self.date,
            "month": self.month,
            "expense_type": self.expense_type.value,
            "notes": self.notes,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_cost": round(self.unit_cost, 2) if self.unit_cost is not None else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class ExpenseDraft:
    """Expense fields as entered, before persistence assigns id and timestamps."""
    category: ExpenseCategory
    amount: float
    date: str
    expense_type: ExpenseType = ExpenseType.OPERATING
    notes: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[int] = None
    unit_cost: Optional[float] = None

    @property
    def month(self) -> str:
        return self.date[:7]


@dataclass
class ShippingRecord:
    """
    One shipment's cost vs what the customer paid.

    Virtual records (is_from_tag=True) are synthesized from order tags on
    read; a persisted record for the same order shadows its virtual twin.
    """
    id: str
    type: ShippingType
    customer_shipping_charged: float
    actual_shipping_cost: float
    date: str
    status: ShippingStatus = ShippingStatus.DELIVERED
    order_id: Optional[str] = None
    invoice_id: Optional[str] = None
    notes: Optional[str] = None
    is_from_tag: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def month(self) -> str:
        return self.date[:7]

    @property
    def profit_loss(self) -> float:
        return self.customer_shipping_charged - self.actual_shipping_cost

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShippingRecord":
        return cls(
            id=str(data["id"]),
            type=ShippingType(data["type"]),
            customer_shipping_charged=float(data.get("customer_shipping_charged") or 0),
            actual_shipping_cost=float(data.get("actual_shipping_cost") or 0),
            date=str(data["date"])[:10],
            status=ShippingStatus(data.get("status") or ShippingStatus.DELIVERED.value),
            order_id=_str_or_none(data.get("order_id")),
            invoice_id=data.get("invoice_id"),
            notes=data.get("notes"),
            is_from_tag=bool(data.get("is_from_tag", False)),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "type": self.type.value,
            "customer_shipping_charged": round(self.customer_shipping_charged, 2),
            "actual_shipping_cost": round(self.actual_shipping_cost, 2),
            "profit_loss": round(self.profit_loss, 2),
            "status": self.status.value,
            "date": self.date,
            "month": self.month,
            "invoice_id": self.invoice_id,
            "notes": self.notes,
            "is_from_tag": self.is_from_tag,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class ShippingRecordDraft:
    type: ShippingType
    customer_shipping_charged: float
    actual_shipping_cost: float
    date: str
    status: ShippingStatus = ShippingStatus.DELIVERED
    order_id: Optional[str] = None
    invoice_id: Optional[str] = None
    notes: Optional[str] = None

    @property
    def month(self) -> str:
        return self.date[:7]


@dataclass
class ProductCost:
    """Per-unit cost basis for a product, itemized into five components."""
    id: str
    product_id: str
    product_name: str
    crochet_labor_per_unit: float = 0.0
    yarn_cost_per_unit: float = 0.0
    helper_colors_cost_per_unit: float = 0.0
    laser_felt_cost_per_unit: float = 0.0
    packaging_per_unit: float = 0.0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    COMPONENTS = (
        "crochet_labor_per_unit",
        "yarn_cost_per_unit",
        "helper_colors_cost_per_unit",
        "laser_felt_cost_per_unit",
        "packaging_per_unit",
    )

    @property
    def total_unit_cost(self) -> float:
        return sum(getattr(self, name) for name in self.COMPONENTS)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductCost":
        return cls(
            id=str(data["id"]),
            product_id=str(data["product_id"]),
            product_name=data.get("product_name") or "",
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            **{name: float(data.get(name) or 0) for name in cls.COMPONENTS},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
        }
        for name in self.COMPONENTS:
            data[name] = round(getattr(self, name), 2)
        data["total_unit_cost"] = round(self.total_unit_cost, 2)
        data["created_at"] = self.created_at
        data["updated_at"] = self.updated_at
        return data


@dataclass
class PayoutConfig:
    """Singleton split of DPP between partners."""
    media_buyer_percent: float = 3.0
    ops_percent: float = 10.0
    crm_percent: float = 7.5
    owner_pay_type: OwnerPayType = OwnerPayType.PERCENT
    owner_pay_value: float = 0.0
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayoutConfig":
        return cls(
            media_buyer_percent=float(data.get("media_buyer_percent") or 0),
            ops_percent=float(data.get("ops_percent") or 0),
            crm_percent=float(data.get("crm_percent") or 0),
            owner_pay_type=OwnerPayType(data.get("owner_pay_type") or OwnerPayType.PERCENT.value),
            owner_pay_value=float(data.get("owner_pay_value") or 0),
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "media_buyer_percent": self.media_buyer_percent,
            "ops_percent": self.ops_percent,
            "crm_percent": self.crm_percent,
            "owner_pay_type": self.owner_pay_type.value,
            "owner_pay_value": self.owner_pay_value,
            "updated_at": self.updated_at,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# DERIVED STATEMENTS
# ═══════════════════════════════════════════════════════════════════════════════

_PROFIT_AMOUNTS = (
    "revenue", "cogs", "gross_profit", "total_expenses", "operating_expenses",
    "production_costs_paid", "shipping_cost", "customer_shipping_charged",
    "shipping_loss", "operating_profit", "dpp", "cash_dpp",
)


@dataclass
class MonthlyProfit:
    """Monthly statement. dpp == revenue - total_expenses - shipping_cost."""
    month: str
    revenue: float = 0.0
    cogs: float = 0.0
    gross_profit: float = 0.0
    total_expenses: float = 0.0
    operating_expenses: float = 0.0
    production_costs_paid: float = 0.0
    shipping_cost: float = 0.0
    customer_shipping_charged: float = 0.0
    shipping_loss: float = 0.0
    operating_profit: float = 0.0
    dpp: float = 0.0
    cash_dpp: float = 0.0
    order_count: int = 0
    cancelled_count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonthlyProfit":
        return cls(
            month=data["month"],
            order_count=int(data.get("order_count") or 0),
            cancelled_count=int(data.get("cancelled_count") or 0),
            **{name: float(data.get(name) or 0) for name in _PROFIT_AMOUNTS},
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"month": self.month}
        for name in _PROFIT_AMOUNTS:
            data[name] = round(getattr(self, name), 2)
        data["order_count"] = self.order_count
        data["cancelled_count"] = self.cancelled_count
        return data


@dataclass
class PayoutBreakdown:
    """Result of splitting a DPP figure by a PayoutConfig."""
    dpp: float
    media_buyer_amount: float
    ops_amount: float
    crm_amount: float
    owner_amount: float
    net_business_profit: float

    @property
    def total_paid_out(self) -> float:
        return self.media_buyer_amount + self.ops_amount + self.crm_amount + self.owner_amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dpp": round(self.dpp, 2),
            "media_buyer_amount": round(self.media_buyer_amount, 2),
            "ops_amount": round(self.ops_amount, 2),
            "crm_amount": round(self.crm_amount, 2),
            "owner_amount": round(self.owner_amount, 2),
            "net_business_profit": round(self.net_business_profit, 2),
        }


@dataclass
class MonthlyPayout:
    """Stored payout snapshot for a month."""
    month: str
    breakdown: PayoutBreakdown

    @property
    def dpp(self) -> float:
        return self.breakdown.dpp

    @property
    def net_business_profit(self) -> float:
        return self.breakdown.net_business_profit

    def to_dict(self) -> Dict[str, Any]:
        return {"month": self.month, **self.breakdown.to_dict()}


@dataclass
class ProductMargin:
    """Per-product margin for a month's paid orders."""
    product_id: str
    product_name: str
    cost_per_unit: float
    average_selling_price: float
    margin_percent: float
    units_sold: int
    total_revenue: float
    total_cost: float

    @property
    def profit(self) -> float:
        return self.total_revenue - self.total_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "cost_per_unit": round(self.cost_per_unit, 2),
            "average_selling_price": round(self.average_selling_price, 2),
            "margin_percent": round(self.margin_percent, 1),
            "units_sold": self.units_sold,
            "total_revenue": round(self.total_revenue, 2),
            "total_cost": round(self.total_cost, 2),
            "profit": round(self.profit, 2),
        }
