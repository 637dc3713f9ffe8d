"""
Order bookkeeping for a Shopify store: monthly profit, shipping and payouts.

This package holds the reconciliation logic used by the web/ API:
- exceptions: Custom exception hierarchy
- validators: Input validation functions
- tags, periods: Order tag parsing and date bucketing
- profit, payouts, margins: Pure calculators
- store, engine: Persistence and orchestration
- query_cache, derived, client: Client-side cache with optimistic edits
"""

# Import in dependency order
from bookkeeping.exceptions import (
    BookkeepingError,
    NotFoundError,
    MutationError,
    ShopifyError,
    BookkeepingConnectionError,
    BookkeepingAPIError,
    ValidationError,
)

from bookkeeping.validators import (
    validate_month,
    validate_month_range,
    validate_date_string,
    validate_date_range,
    validate_category,
    validate_expense_type,
)

from bookkeeping.profit import compute_monthly_profit
from bookkeeping.payouts import compute_payout
from bookkeeping.margins import compute_margins

from bookkeeping.config import config

__all__ = [
    # Exceptions
    "BookkeepingError",
    "NotFoundError",
    "MutationError",
    "ShopifyError",
    "BookkeepingConnectionError",
    "BookkeepingAPIError",
    "ValidationError",
    # Validators
    "validate_month",
    "validate_month_range",
    "validate_date_string",
    "validate_date_range",
    "validate_category",
    "validate_expense_type",
    # Calculators
    "compute_monthly_profit",
    "compute_payout",
    "compute_margins",
    # Config
    "config",
]
