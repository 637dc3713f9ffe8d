"""LedgerStore payout config and payout snapshot methods."""
from __future__ import annotations

from typing import Any, Dict, Optional

from bookkeeping.config import config
from bookkeeping.models import MonthlyPayout, OwnerPayType, PayoutBreakdown, PayoutConfig
from bookkeeping.observability import get_logger
from bookkeeping.repositories.base import as_iso, utcnow

logger = get_logger(__name__)

CONFIG_ROW_ID = 1

_CONFIG_FIELDS = ("media_buyer_percent", "ops_percent", "crm_percent", "owner_pay_type", "owner_pay_value")
_PAYOUT_AMOUNTS = ("dpp", "media_buyer_amount", "ops_amount", "crm_amount", "owner_amount", "net_business_profit")


def _row_to_config(row: tuple) -> PayoutConfig:
    return PayoutConfig(
        media_buyer_percent=float(row[0]),
        ops_percent=float(row[1]),
        crm_percent=float(row[2]),
        owner_pay_type=OwnerPayType(row[3]),
        owner_pay_value=float(row[4]),
        updated_at=as_iso(row[5]),
    )


def default_payout_config() -> PayoutConfig:
    finance = config.finance
    return PayoutConfig(
        media_buyer_percent=finance.default_media_buyer_percent,
        ops_percent=finance.default_ops_percent,
        crm_percent=finance.default_crm_percent,
    )


class PayoutsMixin:

    async def get_payout_config(self) -> PayoutConfig:
        """The single config row, created with defaults on first read."""
        async with self.connection() as conn:
            row = conn.execute(f"""
                SELECT {', '.join(_CONFIG_FIELDS)}, updated_at
                FROM payout_config WHERE id = ?
            """, [CONFIG_ROW_ID]).fetchone()

        if row:
            return _row_to_config(row)

        logger.info("No payout config stored, creating defaults")
        return await self.save_payout_config(default_payout_config())

    async def save_payout_config(self, payout_config: PayoutConfig) -> PayoutConfig:
        values = [
            payout_config.media_buyer_percent,
            payout_config.ops_percent,
            payout_config.crm_percent,
            payout_config.owner_pay_type.value,
            payout_config.owner_pay_value,
        ]
        async with self.connection() as conn:
            row = conn.execute(f"""
                INSERT INTO payout_config (id, {', '.join(_CONFIG_FIELDS)}, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    {', '.join(f'{name} = excluded.{name}' for name in _CONFIG_FIELDS)},
                    updated_at = excluded.updated_at
                RETURNING {', '.join(_CONFIG_FIELDS)}, updated_at
            """, [CONFIG_ROW_ID, *values, utcnow()]).fetchone()
        return _row_to_config(row)

    async def update_payout_config(self, changes: Dict[str, Any]) -> PayoutConfig:
        """Merge `changes` into the stored config (unset fields keep their values)."""
        current = await self.get_payout_config()
        for name, value in changes.items():
            if name not in _CONFIG_FIELDS or value is None:
                continue
            if name == "owner_pay_type":
                value = OwnerPayType(getattr(value, "value", value))
            else:
                value = float(value)
            setattr(current, name, value)

        saved = await self.save_payout_config(current)
        logger.info(f"Payout config updated: {sorted(k for k, v in changes.items() if v is not None)}")
        return saved

    async def save_monthly_payout(self, payout: MonthlyPayout) -> MonthlyPayout:
        now = utcnow()
        breakdown = payout.breakdown
        async with self.connection() as conn:
            conn.execute(f"""
                INSERT INTO monthly_payouts (month, {', '.join(_PAYOUT_AMOUNTS)}, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (month) DO UPDATE SET
                    {', '.join(f'{name} = excluded.{name}' for name in _PAYOUT_AMOUNTS)},
                    updated_at = excluded.updated_at
            """, [
                payout.month,
                *(getattr(breakdown, name) for name in _PAYOUT_AMOUNTS),
                now,
                now,
            ])
        logger.debug(f"Saved payout snapshot for {payout.month}")
        return payout

    async def get_monthly_payout(self, month: str) -> Optional[MonthlyPayout]:
        async with self.connection() as conn:
            row = conn.execute(f"""
                SELECT {', '.join(_PAYOUT_AMOUNTS)} FROM monthly_payouts WHERE month = ?
            """, [month]).fetchone()
        if not row:
            return None
        return MonthlyPayout(
            month=month,
            breakdown=PayoutBreakdown(**{name: float(row[i]) for i, name in enumerate(_PAYOUT_AMOUNTS)}),
        )
