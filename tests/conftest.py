"""
Pytest configuration and shared fixtures.
"""
import pytest
from typing import Dict, List, Any, Optional

from bookkeeping.models import (
    ExpenseCategory,
    ExpenseType,
    FinancialExpense,
    Order,
    ProductCost,
    ShippingRecord,
    ShippingStatus,
    ShippingType,
)


def shopify_order(
    order_id: int,
    tags: str,
    total_price: str = "500.00",
    name: Optional[str] = None,
    created_at: str = "2025-03-10T12:00:00+02:00",
    line_items: Optional[List[Dict[str, Any]]] = None,
    shipping_lines: Optional[List[Dict[str, Any]]] = None,
    city: str = "Cairo",
) -> Dict[str, Any]:
    """Order object shaped like the Shopify Admin REST API returns it."""
    return {
        "id": order_id,
        "name": name or f"#{order_id - 5000}",
        "total_price": total_price,
        "created_at": created_at,
        "tags": tags,
        "line_items": line_items if line_items is not None else [
            {"title": "Crochet Bunny", "quantity": 1, "price": total_price,
             "product_id": 9001, "variant_id": 9101},
        ],
        "shipping_lines": shipping_lines or [],
        "customer": {"first_name": "Mona", "last_name": "Adel", "phone": "+201000000000"},
        "shipping_address": {"city": city, "address1": "12 Nile St"},
    }


@pytest.fixture
def make_order():
    """Factory building Order models from Shopify-shaped dicts."""
    def _make(order_id: int, tags: str, **kwargs) -> Order:
        return Order.from_api(shopify_order(order_id, tags, **kwargs))
    return _make


@pytest.fixture
def paid_order_dict() -> Dict[str, Any]:
    """Paid March order, no shipping tag."""
    return shopify_order(6120, "fulfilled, paid, paid_date:2025-03-15")


@pytest.fixture
def march_orders(make_order) -> List[Order]:
    """A month of orders covering the common tag combinations."""
    return [
        # Paid, courier company cost, customer paid 60 shipping
        make_order(
            6101, "fulfilled, paid, paid_date:2025-03-02, shipping_company_cost:70",
            total_price="800.00", shipping_lines=[{"price": "60.00"}],
        ),
        # Paid, scooter, no shipping line -> default scooter charge applies
        make_order(
            6102, "fulfilled, paid, paid_date:2025-03-05, scooter_shipping_cost:45",
            total_price="450.00",
        ),
        # Paid, no shipping tag
        make_order(6103, "paid, paid_date:2025-03-20", total_price="300.00"),
        # Cancelled after shipping: cost only
        make_order(
            6104, "cancelled, shipping_company_cost:65, shipping_company_cost_date:2025-03-12",
            total_price="900.00",
        ),
        # Paid in February: not in March
        make_order(
            6105, "paid, paid_date:2025-02-27, shipping_company_cost:70",
            total_price="700.00",
        ),
        # Paid but no paid_date: excluded everywhere
        make_order(6106, "paid, fulfilled", total_price="1000.00", created_at="2025-03-15T10:00:00Z"),
    ]


@pytest.fixture
def bunny_cost() -> ProductCost:
    return ProductCost(
        id="pc-1",
        product_id="9001",
        product_name="Crochet Bunny",
        crochet_labor_per_unit=60.0,
        yarn_cost_per_unit=25.0,
        helper_colors_cost_per_unit=5.0,
        laser_felt_cost_per_unit=4.0,
        packaging_per_unit=6.0,
    )


@pytest.fixture
def march_expenses() -> List[FinancialExpense]:
    return [
        FinancialExpense(
            id="e-1", category=ExpenseCategory.ADS, amount=200.0, date="2025-03-03",
            expense_type=ExpenseType.OPERATING, created_at="2025-03-03T09:00:00",
        ),
        FinancialExpense(
            id="e-2", category=ExpenseCategory.RAW_MATERIALS, amount=150.0, date="2025-03-08",
            expense_type=ExpenseType.PRODUCTION, created_at="2025-03-08T09:00:00",
        ),
        FinancialExpense(
            id="e-3", category=ExpenseCategory.PACKAGING, amount=40.0, date="2025-02-25",
            expense_type=ExpenseType.OPERATING, created_at="2025-02-25T09:00:00",
        ),
    ]


@pytest.fixture
def stored_shipping_record() -> ShippingRecord:
    """Manual record for order #1101 (Shopify id 6101), correcting its cost."""
    return ShippingRecord(
        id="sr-1",
        type=ShippingType.COMPANY,
        customer_shipping_charged=60.0,
        actual_shipping_cost=80.0,
        date="2025-03-02",
        status=ShippingStatus.DELIVERED,
        order_id="#1101",
        created_at="2025-03-04T10:00:00",
    )


@pytest.fixture
def order_dict():
    """Factory for raw Shopify order payloads."""
    return shopify_order
