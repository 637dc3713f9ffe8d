"""
Repository mixins for the DuckDB ledger store.

- BaseRepository: Connection management and schema initialization
- ExpensesMixin: Manual and bulk-imported expenses
- ShippingRecordsMixin: Manually entered shipping records
- ProductCostsMixin: Per-unit product cost basis
- ProfitsMixin: Monthly profit snapshots
- PayoutsMixin: Payout config and monthly payout snapshots
"""
from bookkeeping.repositories.base import BaseRepository
from bookkeeping.repositories.expenses import ExpensesMixin
from bookkeeping.repositories.shipping import ShippingRecordsMixin
from bookkeeping.repositories.product_costs import ProductCostsMixin
from bookkeeping.repositories.profits import ProfitsMixin
from bookkeeping.repositories.payouts import PayoutsMixin

__all__ = [
    "BaseRepository",
    "ExpensesMixin",
    "ShippingRecordsMixin",
    "ProductCostsMixin",
    "ProfitsMixin",
    "PayoutsMixin",
]
