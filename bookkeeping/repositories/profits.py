"""LedgerStore monthly profit snapshot methods."""
from __future__ import annotations

from typing import List, Optional

from bookkeeping.models import MonthlyProfit
from bookkeeping.observability import get_logger
from bookkeeping.repositories.base import utcnow

logger = get_logger(__name__)

_AMOUNTS = (
    "revenue", "cogs", "gross_profit", "total_expenses", "operating_expenses",
    "production_costs_paid", "shipping_cost", "customer_shipping_charged",
    "shipping_loss", "operating_profit", "dpp", "cash_dpp",
)
_COLUMNS = "month, " + ", ".join(_AMOUNTS) + ", order_count, cancelled_count"


def _row_to_profit(row: tuple) -> MonthlyProfit:
    amounts = {name: float(row[1 + i]) for i, name in enumerate(_AMOUNTS)}
    return MonthlyProfit(
        month=row[0],
        order_count=int(row[1 + len(_AMOUNTS)]),
        cancelled_count=int(row[2 + len(_AMOUNTS)]),
        **amounts,
    )


class ProfitsMixin:

    async def save_monthly_profit(self, profit: MonthlyProfit) -> MonthlyProfit:
        """Upsert the snapshot for profit.month; at most one row per month."""
        now = utcnow()
        updates = ", ".join(f"{name} = excluded.{name}" for name in _AMOUNTS)
        placeholders = ", ".join("?" for _ in range(len(_AMOUNTS) + 5))

        async with self.connection() as conn:
            row = conn.execute(f"""
                INSERT INTO monthly_profits ({_COLUMNS}, created_at, updated_at)
                VALUES ({placeholders})
                ON CONFLICT (month) DO UPDATE SET
                    {updates},
                    order_count = excluded.order_count,
                    cancelled_count = excluded.cancelled_count,
                    updated_at = excluded.updated_at
                RETURNING {_COLUMNS}
            """, [
                profit.month,
                *(getattr(profit, name) for name in _AMOUNTS),
                profit.order_count,
                profit.cancelled_count,
                now,
                now,
            ]).fetchone()

        logger.debug(f"Saved profit snapshot for {profit.month}")
        return _row_to_profit(row)

    async def get_monthly_profit(self, month: str) -> Optional[MonthlyProfit]:
        async with self.connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM monthly_profits WHERE month = ?", [month]
            ).fetchone()
        return _row_to_profit(row) if row else None

    async def list_monthly_profits(self, start_month: str, end_month: str) -> List[MonthlyProfit]:
        """Stored snapshots with start_month <= month <= end_month, oldest first."""
        async with self.connection() as conn:
            rows = conn.execute(f"""
                SELECT {_COLUMNS} FROM monthly_profits
                WHERE month >= ? AND month <= ?
                ORDER BY month
            """, [start_month, end_month]).fetchall()
        return [_row_to_profit(r) for r in rows]
