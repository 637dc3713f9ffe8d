"""Shared dependencies for API route modules."""
import logging
import time

from slowapi import Limiter
from slowapi.util import get_remote_address

from bookkeeping.config import config
from bookkeeping.engine import ProfitEngine
from bookkeeping.shopify import get_order_source
from bookkeeping.store import get_store
from bookkeeping.validators import (
    validate_month,
    validate_month_range,
    validate_date_string,
    validate_date_range,
    validate_category,
    validate_expense_type,
    validate_shipping_type,
    validate_shipping_status,
    validate_owner_pay_type,
)
from bookkeeping.exceptions import NotFoundError, ValidationError

# Shared limiter instance
limiter = Limiter(key_func=get_remote_address)

# Per-endpoint limits
READ_LIMIT = f"{config.web.rate_limit_per_minute * 2}/minute"
WRITE_LIMIT = f"{config.web.rate_limit_per_minute}/minute"


# Shared logger factory
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


async def get_engine() -> ProfitEngine:
    """Engine over the singleton store and order source."""
    store = await get_store()
    return ProfitEngine(store, get_order_source())


# Track startup time for uptime calculation
START_TIME = time.time()
