"""
DuckDB ledger store.

Persists everything the service owns: expenses, manual shipping records,
product costs, the payout config and the monthly profit/payout snapshots.
Orders are never stored; they are read from Shopify on every calculation.
"""
import asyncio
from typing import Optional

from bookkeeping.repositories import (
    BaseRepository, ExpensesMixin, ShippingRecordsMixin, ProductCostsMixin,
    ProfitsMixin, PayoutsMixin,
)


class LedgerStore(
    ExpensesMixin, ShippingRecordsMixin, ProductCostsMixin, ProfitsMixin, PayoutsMixin,
    BaseRepository,
):
    """Async-compatible DuckDB store for bookkeeping records."""


# Singleton instance
_store_instance: Optional[LedgerStore] = None
_store_lock = asyncio.Lock()


async def get_store() -> LedgerStore:
    """Get singleton ledger store instance (coroutine-safe)."""
    global _store_instance
    async with _store_lock:
        if _store_instance is None:
            _store_instance = LedgerStore()
            await _store_instance.connect()
    return _store_instance


async def close_store() -> None:
    """Close singleton store instance."""
    global _store_instance
    if _store_instance:
        await _store_instance.close()
        _store_instance = None
