"""Partner payout split of DPP."""
from bookkeeping.models import MonthlyPayout, MonthlyProfit, OwnerPayType, PayoutBreakdown, PayoutConfig
from bookkeeping.observability import get_logger

logger = get_logger(__name__)


def compute_payout(dpp: float, config: PayoutConfig) -> PayoutBreakdown:
    """
    Split `dpp` by the configured percentages.

    The owner share is either a fixed amount or a percentage of DPP. Nothing
    is clamped: when the shares exceed DPP the net business profit is negative.
    """
    media_buyer = dpp * config.media_buyer_percent / 100
    ops = dpp * config.ops_percent / 100
    crm = dpp * config.crm_percent / 100
    if config.owner_pay_type == OwnerPayType.FIXED:
        owner = config.owner_pay_value
    else:
        owner = dpp * config.owner_pay_value / 100

    net = dpp - (media_buyer + ops + crm + owner)
    if net < 0:
        logger.warning(f"Payout shares exceed DPP {dpp:.2f}: net business profit {net:.2f}")

    return PayoutBreakdown(
        dpp=dpp,
        media_buyer_amount=media_buyer,
        ops_amount=ops,
        crm_amount=crm,
        owner_amount=owner,
        net_business_profit=net,
    )


def build_monthly_payout(profit: MonthlyProfit, config: PayoutConfig) -> MonthlyPayout:
    """Payout snapshot for a stored profit statement (cash basis DPP)."""
    return MonthlyPayout(month=profit.month, breakdown=compute_payout(profit.cash_dpp, config))
