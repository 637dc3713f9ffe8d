"""
Tests for bookkeeping.payouts module.
"""
import logging

import pytest

from bookkeeping.models import MonthlyProfit, OwnerPayType, PayoutConfig
from bookkeeping.payouts import build_monthly_payout, compute_payout


class TestComputePayout:
    """Tests for compute_payout()."""

    def test_fixed_owner_pay(self):
        """10/10/5 percent plus a fixed 1000 owner share of 10000."""
        config = PayoutConfig(
            media_buyer_percent=10, ops_percent=10, crm_percent=5,
            owner_pay_type=OwnerPayType.FIXED, owner_pay_value=1000,
        )
        payout = compute_payout(10000, config)
        assert payout.media_buyer_amount == 1000
        assert payout.ops_amount == 1000
        assert payout.crm_amount == 500
        assert payout.owner_amount == 1000
        assert payout.net_business_profit == 6500

    def test_percent_owner_pay(self):
        config = PayoutConfig(media_buyer_percent=3, ops_percent=10, crm_percent=7.5,
                              owner_pay_type=OwnerPayType.PERCENT, owner_pay_value=20)
        payout = compute_payout(2000, config)
        assert payout.owner_amount == pytest.approx(400)
        assert payout.net_business_profit == pytest.approx(2000 - 60 - 200 - 150 - 400)

    def test_shares_sum_to_dpp(self):
        config = PayoutConfig()
        payout = compute_payout(1234.56, config)
        assert payout.total_paid_out + payout.net_business_profit == pytest.approx(1234.56)

    def test_over_allocation_goes_negative(self, caplog):
        """Shares above 100% are not clamped; a warning is logged."""
        config = PayoutConfig(media_buyer_percent=60, ops_percent=60, crm_percent=0, owner_pay_value=0)
        with caplog.at_level(logging.WARNING):
            payout = compute_payout(1000, config)
        assert payout.net_business_profit == pytest.approx(-200)
        assert "exceed" in caplog.text

    def test_fixed_owner_on_negative_dpp(self):
        config = PayoutConfig(media_buyer_percent=0, ops_percent=0, crm_percent=0,
                              owner_pay_type=OwnerPayType.FIXED, owner_pay_value=500)
        assert compute_payout(-100, config).net_business_profit == -600


class TestBuildMonthlyPayout:
    """Tests for build_monthly_payout()."""

    def test_uses_cash_dpp(self):
        profit = MonthlyProfit(month="2025-03", dpp=1000, cash_dpp=900)
        payout = build_monthly_payout(profit, PayoutConfig(0, 0, 0, OwnerPayType.PERCENT, 0))
        assert payout.month == "2025-03"
        assert payout.dpp == 900
        assert payout.to_dict()["net_business_profit"] == 900
