"""
Integration tests for ProfitEngine over an in-memory store and a stub order source.
"""
from datetime import date, datetime

import pytest

from bookkeeping.config import AppConfig, FinanceConfig, ShopifyConfig
from bookkeeping.engine import ProfitEngine
from bookkeeping.exceptions import NotFoundError
from bookkeeping.models import (
    ExpenseCategory,
    ExpenseDraft,
    ExpenseType,
    OwnerPayType,
    ShippingRecordDraft,
    ShippingType,
)


@pytest.fixture
def app_config():
    return AppConfig(
        shopify=ShopifyConfig(shop_domain="bunnies.myshopify.com", access_token="x", order_lookback_days=120),
        finance=FinanceConfig(flyer_cost_per_order=0.0, scooter_default_charge=50.0),
    )


@pytest.fixture
def engine(store, order_source, app_config):
    return ProfitEngine(store, order_source, app_config)


async def seed_march(store):
    await store.add_expense(ExpenseDraft(ExpenseCategory.ADS, 200.0, "2025-03-03", ExpenseType.OPERATING))
    await store.add_expense(ExpenseDraft(ExpenseCategory.RAW_MATERIALS, 150.0, "2025-03-08", ExpenseType.PRODUCTION))
    await store.add_expense(ExpenseDraft(ExpenseCategory.PACKAGING, 40.0, "2025-02-25", ExpenseType.OPERATING))
    await store.add_product_cost("9001", "Crochet Bunny", crochet_labor_per_unit=60, yarn_cost_per_unit=40)


class TestFetchOrders:
    """Tests for the order window."""

    @pytest.mark.asyncio
    async def test_lookback_window(self, engine, order_source):
        """Orders are fetched from lookback days before the month, with no upper bound."""
        await engine.fetch_orders(date(2025, 3, 1))
        order_source.get_orders.assert_awaited_once_with(created_at_min=datetime(2024, 11, 1))


class TestCalculateProfit:
    """Tests for calculate_profit and snapshots."""

    @pytest.mark.asyncio
    async def test_calculate_and_store(self, engine, store):
        await seed_march(store)
        profit = await engine.calculate_profit("2025-03")
        assert profit.revenue == pytest.approx(1550.0)
        assert profit.total_expenses == pytest.approx(350.0)
        assert profit.shipping_cost == pytest.approx(180.0)
        assert profit.cogs == pytest.approx(300.0)
        assert profit.dpp == pytest.approx(1020.0)
        assert await engine.get_monthly_profit("2025-03") == profit

    @pytest.mark.asyncio
    async def test_idempotent(self, engine, store):
        """Calculating twice gives equal statements and a single snapshot."""
        await seed_march(store)
        first = await engine.calculate_profit("2025-03")
        second = await engine.calculate_profit("2025-03")
        assert first == second
        assert len(await store.fetchall("SELECT month FROM monthly_profits")) == 1

    @pytest.mark.asyncio
    async def test_stored_shipping_shadows_tags(self, engine, store):
        await store.add_shipping_record(ShippingRecordDraft(
            type=ShippingType.COMPANY, customer_shipping_charged=60.0,
            actual_shipping_cost=80.0, date="2025-03-02", order_id="#1101",
        ))
        profit = await engine.calculate_profit("2025-03")
        assert profit.shipping_cost == pytest.approx(190.0)

    @pytest.mark.asyncio
    async def test_flyer_cost(self, store, order_source):
        config = AppConfig(finance=FinanceConfig(flyer_cost_per_order=5.0))
        await seed_march(store)
        profit = await ProfitEngine(store, order_source, config).calculate_profit("2025-03")
        assert profit.cogs == pytest.approx(315.0)

    @pytest.mark.asyncio
    async def test_never_calculated(self, engine):
        assert await engine.get_monthly_profit("2025-03") is None

    @pytest.mark.asyncio
    async def test_summary(self, engine, store):
        await seed_march(store)
        await engine.calculate_profit("2025-03")
        summary = await engine.get_profit_summary("2025-02", "2025-03")
        assert summary["missing_months"] == ["2025-02"]
        assert summary["totals"]["dpp"] == pytest.approx(1020.0)
        assert summary["totals"]["order_count"] == 3
        assert [m["month"] for m in summary["months"]] == ["2025-03"]


class TestPayouts:
    """Tests for payout calculation."""

    @pytest.mark.asyncio
    async def test_requires_profit(self, engine):
        """Payouts for an uncalculated month raise instead of using zero."""
        with pytest.raises(NotFoundError):
            await engine.calculate_payouts("2025-03")

    @pytest.mark.asyncio
    async def test_split(self, engine, store):
        await seed_march(store)
        await store.update_payout_config({
            "media_buyer_percent": 10, "ops_percent": 10, "crm_percent": 5,
            "owner_pay_type": OwnerPayType.FIXED, "owner_pay_value": 100,
        })
        profit = await engine.calculate_profit("2025-03")
        payout = await engine.calculate_payouts("2025-03")
        assert payout.dpp == pytest.approx(profit.cash_dpp)
        assert payout.net_business_profit == pytest.approx(1020.0 * 0.75 - 100)

    @pytest.mark.asyncio
    async def test_stale_payout_recalculated(self, engine, store, order_source, make_order):
        """A payout stored before the profit changed is recomputed on read."""
        await seed_march(store)
        await engine.calculate_profit("2025-03")
        await engine.calculate_payouts("2025-03")

        order_source.get_orders.return_value = order_source.get_orders.return_value + [
            make_order(6200, "paid, paid_date:2025-03-25", total_price="1000.00"),
        ]
        await engine.calculate_profit("2025-03")

        payout = await engine.get_monthly_payout("2025-03")
        assert payout.dpp == pytest.approx(2020.0)
        assert (await store.get_monthly_payout("2025-03")).dpp == pytest.approx(2020.0)

    @pytest.mark.asyncio
    async def test_no_payout(self, engine):
        assert await engine.get_monthly_payout("2025-03") is None


class TestLedgerViews:
    """Tests for shipping, order and margin views."""

    @pytest.mark.asyncio
    async def test_shipping_ledger(self, engine):
        records = await engine.shipping_ledger("2025-03")
        assert {r.id for r in records} == {"tag-6101", "tag-scooter-6102", "tag-cancelled-6104"}

    @pytest.mark.asyncio
    async def test_ledger_with_shadows(self, engine, store):
        """A February record for a March order is served next to the March ledger."""
        february = await store.add_shipping_record(ShippingRecordDraft(
            type=ShippingType.UBER, customer_shipping_charged=50.0,
            actual_shipping_cost=30.0, date="2025-02-27", order_id="#1102",
        ))
        records, shadowing = await engine.shipping_ledger_with_shadows("2025-03")

        assert {r.id for r in records} == {"tag-6101", "tag-cancelled-6104"}
        assert [r.id for r in shadowing] == [february.id]
        profit = await engine.calculate_profit("2025-03")
        assert profit.shipping_cost == pytest.approx(sum(r.actual_shipping_cost for r in records))

    @pytest.mark.asyncio
    async def test_shipping_performance(self, engine):
        performance = await engine.shipping_performance("2025-03")
        assert performance.profit_loss == pytest.approx(-70.0)

    @pytest.mark.asyncio
    async def test_orders_for_month(self, engine):
        orders = await engine.orders_for_month("2025-03")
        assert sorted(o.id for o in orders) == ["6101", "6102", "6103", "6104"]

    @pytest.mark.asyncio
    async def test_order_rows(self, engine):
        rows = await engine.order_rows("2025-03")
        assert rows[0].order_id == "6103"

    @pytest.mark.asyncio
    async def test_product_margins(self, engine, store):
        await seed_march(store)
        margins = await engine.product_margins("2025-03", search="bunny")
        assert margins[0].units_sold == 3
        assert await engine.product_margins("2025-03", search="bear") == []

    @pytest.mark.asyncio
    async def test_revenue_report(self, engine, order_source, make_order):
        order_source.get_orders.return_value = [
            make_order(1, "fulfilled, fulfillment_date:2025-03-09", total_price="400.00", city="Alexandria"),
        ]
        report = await engine.revenue_report(date(2025, 3, 1), date(2025, 3, 31))
        assert report.total_revenue == 400.0
        assert report.total_shipping_cost == pytest.approx(68.40)


class TestExpenses:
    """Tests for bulk import and breakdown."""

    @pytest.mark.asyncio
    async def test_import(self, engine, store):
        created, dropped = await engine.import_expenses(
            "Date\tName\tAmount\n12/1/2025\tYasmin material\t360\n12/6/2025\tOla pcs\t1540\n"
        )
        assert dropped == 1
        assert [e.category for e in created] == [ExpenseCategory.RAW_MATERIALS, ExpenseCategory.PRODUCTION_LABOR]
        assert await store.get_monthly_expense_total("2025-12") == pytest.approx(1900.0)

    @pytest.mark.asyncio
    async def test_import_counts_negative_rows_as_dropped(self, engine):
        created, dropped = await engine.import_expenses("12/1/2025\tYasmin material\t-360\n12/6/2025\tOla pcs\t1540\n")
        assert dropped == 1
        assert [e.amount for e in created] == [1540.0]

    @pytest.mark.asyncio
    async def test_breakdown_uses_stored_revenue(self, engine, store):
        await seed_march(store)
        before = await engine.expense_breakdown("2025-03")
        assert all(s.percent_of_revenue == 0.0 for s in before)

        await engine.calculate_profit("2025-03")
        after = {s.category: s for s in await engine.expense_breakdown("2025-03")}
        assert after["Ads"].percent_of_revenue == pytest.approx(200 / 1550 * 100)
