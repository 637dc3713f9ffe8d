"""
Fixtures for integration tests: an in-memory ledger store and a stub order source.
"""
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from bookkeeping.store import LedgerStore


@pytest_asyncio.fixture
async def store():
    """Fresh in-memory DuckDB store per test."""
    ledger = LedgerStore(":memory:")
    await ledger.connect()
    yield ledger
    await ledger.close()


@pytest.fixture
def order_source(march_orders):
    """Order source returning the March fixture orders."""
    source = AsyncMock()
    source.get_orders.return_value = march_orders
    return source
