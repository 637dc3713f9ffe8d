"""
Tests for bookkeeping.shipping_ledger module.
"""
import pytest

from bookkeeping.models import ShippingRecord, ShippingStatus, ShippingType
from bookkeeping.shipping_ledger import (
    merge_shipping_records,
    normalize_order_ref,
    shadowing_records,
    shipping_performance,
    virtual_records,
)


class TestVirtualRecords:
    """Tests for records synthesized from order tags."""

    def test_march_records(self, march_orders):
        records = {r.id: r for r in virtual_records(march_orders, "2025-03")}
        assert set(records) == {"tag-6101", "tag-scooter-6102", "tag-cancelled-6104"}

        company = records["tag-6101"]
        assert company.type == ShippingType.COMPANY
        assert company.actual_shipping_cost == 70.0
        assert company.customer_shipping_charged == 60.0
        assert company.order_id == "1101"
        assert company.is_from_tag

    def test_scooter_default_charge(self, march_orders):
        """Scooter orders without shipping lines are charged the default."""
        records = {r.id: r for r in virtual_records(march_orders, "2025-03", scooter_default_charge=40.0)}
        scooter = records["tag-scooter-6102"]
        assert scooter.type == ShippingType.UBER
        assert scooter.customer_shipping_charged == 40.0

    def test_cancelled_record(self, march_orders):
        records = {r.id: r for r in virtual_records(march_orders, "2025-03")}
        cancelled = records["tag-cancelled-6104"]
        assert cancelled.status == ShippingStatus.CANCELLED
        assert cancelled.customer_shipping_charged == 0.0
        assert cancelled.date == "2025-03-12"


class TestMerge:
    """Tests for merge_shipping_records()."""

    def test_stored_record_shadows_virtual(self, march_orders, stored_shipping_record):
        """A stored record for order #1101 replaces its tag-derived twin."""
        ledger = merge_shipping_records([stored_shipping_record], march_orders, "2025-03")
        ids = [r.id for r in ledger]
        assert "sr-1" in ids
        assert "tag-6101" not in ids
        assert sum(r.actual_shipping_cost for r in ledger) == pytest.approx(190.0)

    def test_shadow_by_shopify_id(self, march_orders, stored_shipping_record):
        stored_shipping_record.order_id = "6102"
        ledger = merge_shipping_records([stored_shipping_record], march_orders, "2025-03")
        assert "tag-scooter-6102" not in [r.id for r in ledger]

    def test_stored_record_from_other_month_still_shadows(self, march_orders, stored_shipping_record):
        """Shadowing uses every stored record, output only the month's."""
        stored_shipping_record.date = "2025-04-02"
        ledger = merge_shipping_records([stored_shipping_record], march_orders, "2025-03")
        ids = [r.id for r in ledger]
        assert "sr-1" not in ids
        assert "tag-6101" not in ids

    def test_no_double_count(self, march_orders, stored_shipping_record):
        """Merging twice or passing virtual records back in changes nothing."""
        first = merge_shipping_records([stored_shipping_record], march_orders, "2025-03")
        second = merge_shipping_records(first, march_orders, "2025-03")
        assert [r.id for r in first] == [r.id for r in second]

    def test_ledger_newest_first(self, march_orders):
        ledger = merge_shipping_records([], march_orders, "2025-03")
        dates = [r.date for r in ledger]
        assert dates == sorted(dates, reverse=True)

    @pytest.mark.parametrize("ref,expected", [
        ("#1120", "1120"),
        (" 1120 ", "1120"),
        ("#", None),
        (None, None),
    ])
    def test_normalize_order_ref(self, ref, expected):
        assert normalize_order_ref(ref) == expected


class TestShadowingRecords:
    """Tests for shadowing_records()."""

    def test_other_month_record_shadowing_an_order(self, march_orders, stored_shipping_record):
        february = ShippingRecord(
            id="sr-feb", type=ShippingType.UBER, customer_shipping_charged=50.0,
            actual_shipping_cost=30.0, date="2025-02-27", order_id="#1102",
        )
        unrelated = ShippingRecord(
            id="sr-old", type=ShippingType.COMPANY, customer_shipping_charged=0.0,
            actual_shipping_cost=20.0, date="2025-01-10", order_id="#999",
        )
        records = shadowing_records([stored_shipping_record, february, unrelated], march_orders, "2025-03")
        assert [r.id for r in records] == ["sr-feb"]

    def test_month_records_excluded(self, march_orders, stored_shipping_record):
        """Records dated in the month are already part of its ledger."""
        assert shadowing_records([stored_shipping_record], march_orders, "2025-03") == []


class TestPerformance:
    """Tests for shipping_performance()."""

    def test_totals_by_carrier(self, march_orders):
        performance = shipping_performance(merge_shipping_records([], march_orders, "2025-03"))
        assert performance.by_type["Company"].count == 2
        assert performance.by_type["Uber"].profit_loss == pytest.approx(5.0)
        assert performance.total_cost == pytest.approx(180.0)
        assert performance.total_charged == pytest.approx(110.0)
        assert performance.cancelled_count == 1
        assert performance.cancelled_loss == 65.0

    def test_empty(self):
        data = shipping_performance([]).to_dict()
        assert data["profit_loss"] == 0.0
        assert set(data["by_type"]) == {"Company", "Uber"}

    def test_manual_record_counts(self):
        record = ShippingRecord(
            id="m-1", type=ShippingType.UBER, customer_shipping_charged=50.0,
            actual_shipping_cost=30.0, date="2025-03-05",
        )
        assert shipping_performance([record]).profit_loss == 20.0
