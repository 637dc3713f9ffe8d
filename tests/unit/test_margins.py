"""
Tests for bookkeeping.margins module.
"""
import pytest

from bookkeeping.margins import (
    compute_margins,
    filter_margins,
    margin_percent,
    match_product_cost,
    sort_margins,
)
from bookkeeping.models import LineItem, ProductCost


@pytest.fixture
def costs(bunny_cost):
    bear = ProductCost(id="pc-2", product_id="9002", product_name="Teddy Bear", yarn_cost_per_unit=150)
    return [bunny_cost, bear]


class TestMatchProductCost:
    """Tests for line item to cost matching."""

    def test_product_id_first(self, costs):
        item = LineItem(title="Teddy Bear", quantity=1, price=300, product_id="9001")
        assert match_product_cost(item, costs).product_id == "9001"

    def test_title_fallback(self, costs):
        """Without id matches the title is compared by containment."""
        item = LineItem(title="teddy bear - large", quantity=1, price=300)
        assert match_product_cost(item, costs).product_id == "9002"

    def test_no_match(self, costs):
        assert match_product_cost(LineItem(title="", quantity=1, price=1), costs) is None


class TestComputeMargins:
    """Tests for compute_margins()."""

    def test_march_margins(self, march_orders, costs):
        margins = compute_margins("2025-03", march_orders, costs)
        assert len(margins) == 1
        bunny = margins[0]
        assert bunny.units_sold == 3
        assert bunny.total_revenue == pytest.approx(1550.0)
        assert bunny.cost_per_unit == 100.0
        assert bunny.margin_percent == pytest.approx((1550 / 3 - 100) / (1550 / 3) * 100)

    def test_missing_paid_date_excluded(self, make_order, costs):
        """A paid order without paid_date is left out even if created in the month."""
        order = make_order(1, "paid, fulfilled", created_at="2025-03-15T10:00:00Z")
        assert compute_margins("2025-03", [order], costs) == []

    def test_no_fulfillment_date_fallback(self, make_order, costs):
        order = make_order(1, "paid, fulfilled, fulfillment_date:2025-03-10")
        assert compute_margins("2025-03", [order], costs) == []

    def test_margin_percent_zero_price(self):
        assert margin_percent(0, 50) == 0.0


class TestFilterAndSort:
    """Tests for filter_margins() and sort_margins()."""

    @pytest.fixture
    def margins(self, make_order, costs):
        orders = [
            make_order(1, "paid, paid_date:2025-03-01", line_items=[
                {"title": "Crochet Bunny", "quantity": 2, "price": "200", "product_id": 9001},
                {"title": "Teddy Bear", "quantity": 1, "price": "600", "product_id": 9002},
            ]),
        ]
        return compute_margins("2025-03", orders, costs)

    def test_search(self, margins):
        assert [m.product_name for m in filter_margins(margins, search="teddy")] == ["Teddy Bear"]

    def test_margin_bounds(self, margins):
        assert [m.product_name for m in filter_margins(margins, min_margin=60)] == ["Teddy Bear"]
        assert [m.product_name for m in filter_margins(margins, max_margin=60)] == ["Crochet Bunny"]

    def test_sort(self, margins):
        assert [m.product_name for m in sort_margins(margins)] == ["Teddy Bear", "Crochet Bunny"]
        assert [m.product_name for m in sort_margins(margins, "units_sold")] == ["Crochet Bunny", "Teddy Bear"]
        assert [m.product_name for m in sort_margins(margins, "product_name", descending=False)] == [
            "Crochet Bunny", "Teddy Bear",
        ]

    def test_unknown_sort_key(self, margins):
        with pytest.raises(ValueError):
            sort_margins(margins, "colour")
