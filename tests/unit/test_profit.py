"""
Tests for bookkeeping.profit module.
"""
import pytest

from bookkeeping.models import LineItem, ProductCost
from bookkeeping.payouts import compute_payout
from bookkeeping.models import PayoutConfig, OwnerPayType
from bookkeeping.profit import compute_cogs, compute_monthly_profit, unit_cost_for, index_product_costs


class TestComputeMonthlyProfit:
    """Tests for compute_monthly_profit()."""

    def test_single_paid_order(self, make_order):
        """One paid order without shipping: revenue 500, no shipping cost."""
        order = make_order(1, "fulfilled, paid, paid_date:2025-03-15", total_price="500.00")
        profit = compute_monthly_profit("2025-03", [order], [], [], [])
        assert profit.revenue == 500.0
        assert profit.shipping_cost == 0.0
        assert profit.dpp == 500.0

    def test_cancelled_order_costs_shipping(self, make_order):
        """The same order cancelled with scooter cost 50 nets -50."""
        order = make_order(
            1, "fulfilled, paid, paid_date:2025-03-15, cancelled, scooter_shipping_cost:50",
            total_price="500.00",
        )
        profit = compute_monthly_profit("2025-03", [order], [], [], [])
        assert profit.revenue == 0.0
        assert profit.shipping_cost == 50.0
        assert profit.dpp == -50.0
        assert profit.cancelled_count == 1
        assert profit.order_count == 0

    def test_march_statement(self, march_orders, march_expenses, bunny_cost):
        profit = compute_monthly_profit("2025-03", march_orders, march_expenses, [], [bunny_cost])
        assert profit.revenue == pytest.approx(1550.0)
        assert profit.shipping_cost == pytest.approx(180.0)
        assert profit.customer_shipping_charged == pytest.approx(110.0)
        assert profit.shipping_loss == pytest.approx(-70.0)
        assert profit.total_expenses == pytest.approx(350.0)
        assert profit.operating_expenses == pytest.approx(200.0)
        assert profit.production_costs_paid == pytest.approx(150.0)
        assert profit.cogs == pytest.approx(300.0)
        assert profit.gross_profit == pytest.approx(1250.0)
        assert profit.operating_profit == pytest.approx(870.0)
        assert profit.dpp == pytest.approx(1020.0)
        assert profit.order_count == 3
        assert profit.cancelled_count == 1

    def test_dpp_identity(self, march_orders, march_expenses, stored_shipping_record):
        """dpp always equals revenue - total_expenses - shipping_cost."""
        profit = compute_monthly_profit(
            "2025-03", march_orders, march_expenses, [stored_shipping_record], [],
        )
        assert profit.dpp == pytest.approx(profit.revenue - profit.total_expenses - profit.shipping_cost)
        assert profit.cash_dpp == pytest.approx(profit.dpp)

    def test_stored_record_not_double_counted(self, march_orders, stored_shipping_record):
        """A stored record for order #1101 replaces the tag cost instead of adding to it."""
        profit = compute_monthly_profit("2025-03", march_orders, [], [stored_shipping_record], [])
        assert profit.shipping_cost == pytest.approx(190.0)

    def test_idempotent(self, march_orders, march_expenses, bunny_cost):
        """Same inputs, equal statements."""
        args = ("2025-03", march_orders, march_expenses, [], [bunny_cost])
        assert compute_monthly_profit(*args) == compute_monthly_profit(*args)

    def test_empty_month_is_zero(self):
        profit = compute_monthly_profit("2025-07", [], [], [], [])
        assert profit.to_dict()["dpp"] == 0.0
        assert profit.order_count == 0

    def test_flyer_cost_per_order(self, march_orders, bunny_cost):
        profit = compute_monthly_profit("2025-03", march_orders, [], [], [bunny_cost], flyer_cost=5.0)
        assert profit.cogs == pytest.approx(315.0)

    def test_payout_agrees_with_independent_recomputation(self, march_orders, march_expenses):
        """Payout of the statement's DPP matches a payout of hand-summed figures."""
        config = PayoutConfig(media_buyer_percent=10, ops_percent=10, crm_percent=5,
                              owner_pay_type=OwnerPayType.FIXED, owner_pay_value=100)
        profit = compute_monthly_profit("2025-03", march_orders, march_expenses, [], [])
        independent = (800 + 450 + 300) - (200 + 150) - (70 + 45 + 65)
        assert compute_payout(profit.dpp, config).net_business_profit == pytest.approx(
            compute_payout(independent, config).net_business_profit
        )


class TestCogs:
    """Tests for the cost-of-goods helpers."""

    def test_variant_id_match(self, bunny_cost):
        bunny_cost.product_id = "9101"
        item = LineItem(title="Bunny", quantity=2, price=250.0, product_id="1", variant_id="9101")
        assert unit_cost_for(item, index_product_costs([bunny_cost])) is bunny_cost

    def test_unmatched_items_cost_nothing(self, make_order, bunny_cost):
        order = make_order(1, "paid, paid_date:2025-03-01", line_items=[
            {"title": "Mystery", "quantity": 3, "price": "10", "product_id": 1},
        ])
        assert compute_cogs([order], [bunny_cost]) == 0.0

    def test_first_duplicate_wins(self):
        first = ProductCost(id="a", product_id="1", product_name="A", yarn_cost_per_unit=10)
        second = ProductCost(id="b", product_id="1", product_name="A", yarn_cost_per_unit=99)
        assert index_product_costs([first, second])["1"] is first
