"""
Tests for bookkeeping.derived module.
"""
import pytest

from bookkeeping.derived import PAYOUT_CONFIG_KEY, expense_trend, recompute_figures, recompute_payout
from bookkeeping.expense_ledger import expenses_for_month
from bookkeeping.models import OwnerPayType, PayoutConfig, ShippingRecord, ShippingType
from bookkeeping.payouts import compute_payout
from bookkeeping.profit import compute_monthly_profit
from bookkeeping.query_cache import EXPENSES, ORDERS, SHIPPING_RECORDS, SHIPPING_SHADOWS, QueryCache


@pytest.fixture
def loaded_cache(march_orders, march_expenses, stored_shipping_record):
    cache = QueryCache()
    cache.set((ORDERS, "2025-03"), march_orders)
    cache.set((EXPENSES, "2025-03"), expenses_for_month(march_expenses, "2025-03"))
    cache.set((EXPENSES, "2025-02"), expenses_for_month(march_expenses, "2025-02"))
    cache.set((SHIPPING_RECORDS, "2025-03"), [stored_shipping_record])
    return cache


class TestRecomputeFigures:
    """Tests for recompute_figures()."""

    def test_figures(self, loaded_cache):
        figures = recompute_figures(loaded_cache, "2025-03")
        assert figures.revenue == pytest.approx(1550.0)
        assert figures.total_expenses == pytest.approx(350.0)
        assert figures.shipping_cost == pytest.approx(190.0)
        assert figures.dpp == pytest.approx(1010.0)
        assert figures.order_count == 3

    def test_agrees_with_server_statement(self, loaded_cache, march_orders, march_expenses, stored_shipping_record):
        """The cached recomputation and the stored statement give the same DPP."""
        profit = compute_monthly_profit("2025-03", march_orders, march_expenses, [stored_shipping_record], [])
        assert recompute_figures(loaded_cache, "2025-03").dpp == pytest.approx(profit.dpp)

    def test_record_from_other_month_shadows(self, loaded_cache, march_orders, march_expenses, stored_shipping_record):
        """A February record for a March order hides its tag cost on both sides."""
        february = ShippingRecord(
            id="sr-feb", type=ShippingType.UBER, customer_shipping_charged=50.0,
            actual_shipping_cost=30.0, date="2025-02-27", order_id="#1102",
        )
        loaded_cache.set((SHIPPING_SHADOWS, "2025-03"), [february])

        profit = compute_monthly_profit(
            "2025-03", march_orders, march_expenses, [stored_shipping_record, february], []
        )
        figures = recompute_figures(loaded_cache, "2025-03")
        assert figures.shipping_cost == pytest.approx(145.0)
        assert figures.dpp == pytest.approx(profit.dpp)

    def test_other_cached_month_shadows(self, loaded_cache):
        february = ShippingRecord(
            id="sr-feb", type=ShippingType.UBER, customer_shipping_charged=50.0,
            actual_shipping_cost=30.0, date="2025-02-27", order_id="#1102",
        )
        loaded_cache.set((SHIPPING_RECORDS, "2025-02"), [february])
        assert recompute_figures(loaded_cache, "2025-03").shipping_cost == pytest.approx(145.0)

    def test_sees_cache_changes_immediately(self, loaded_cache, march_expenses):
        """Nothing is memoized: a cache write shows up on the next read."""
        before = recompute_figures(loaded_cache, "2025-03").dpp
        loaded_cache.update((EXPENSES, "2025-03"), lambda items: [e for e in items if e.id != "e-1"])
        after = recompute_figures(loaded_cache, "2025-03").dpp
        assert after == pytest.approx(before + 200.0)

    def test_empty_cache(self):
        figures = recompute_figures(QueryCache(), "2025-03")
        assert figures.to_dict()["dpp"] == 0.0


class TestRecomputePayout:
    """Tests for recompute_payout()."""

    def test_uses_cached_config(self, loaded_cache):
        config = PayoutConfig(10, 10, 5, OwnerPayType.FIXED, 100)
        loaded_cache.set(PAYOUT_CONFIG_KEY, config)
        payout = recompute_payout(loaded_cache, "2025-03")
        assert payout.net_business_profit == pytest.approx(compute_payout(1010.0, config).net_business_profit)

    def test_defaults_without_config(self, loaded_cache):
        payout = recompute_payout(loaded_cache, "2025-03")
        assert payout.media_buyer_amount == pytest.approx(1010.0 * 0.03)


class TestExpenseTrend:
    """Tests for expense_trend()."""

    def test_trend(self, loaded_cache):
        trend = expense_trend(loaded_cache, "2025-03", months=3)
        assert [t["month"] for t in trend] == ["2025-01", "2025-02", "2025-03"]
        assert trend[0]["loaded"] is False
        assert trend[1]["operating"] == 40.0
        assert trend[2] == {
            "month": "2025-03", "operating": 200.0, "production": 150.0, "total": 350.0, "loaded": True,
        }
