"""
Client side of the financial API.

BookkeepingClient is a thin async HTTP client for `/api/financial`.
FinanceDashboard keeps a month's data in a QueryCache, applies edits
optimistically and derives DPP and payouts from the cache on every read.

Usage:
    async with BookkeepingClient() as client:
        dashboard = FinanceDashboard(client)
        await dashboard.load_month("2025-03")

        await dashboard.create_expense(draft)      # visible at once, rolled back on failure
        figures = dashboard.figures("2025-03")     # recomputed from the cache
"""
import asyncio
import dataclasses
from typing import Any, Dict, List, Optional, Tuple

import httpx

from bookkeeping.config import config
from bookkeeping.derived import (
    PAYOUT_CONFIG_KEY,
    DerivedFigures,
    expense_trend,
    recompute_figures,
    recompute_payout,
)
from bookkeeping.exceptions import BookkeepingAPIError, BookkeepingConnectionError
from bookkeeping.models import (
    ExpenseDraft,
    FinancialExpense,
    MonthlyPayout,
    MonthlyProfit,
    Order,
    PayoutBreakdown,
    PayoutConfig,
    ShippingRecord,
    ShippingRecordDraft,
)
from bookkeeping.observability import Timer, get_correlation_id, get_logger
from bookkeeping.query_cache import (
    EXPENSES,
    MONTHLY_PROFIT,
    ORDERS,
    PAYOUT_CONFIG,
    SHIPPING_RECORDS,
    SHIPPING_SHADOWS,
    OptimisticMutation,
    QueryCache,
    ResourceMutations,
)

logger = get_logger(__name__)

REQUEST_TIMEOUT = 30.0


def _draft_payload(draft: Any) -> Dict[str, Any]:
    payload = {}
    for name, value in dataclasses.asdict(draft).items():
        payload[name] = getattr(value, "value", value)
    return payload


def _changes_payload(changes: Dict[str, Any]) -> Dict[str, Any]:
    return {name: getattr(value, "value", value) for name, value in changes.items()}


def _payout_from_dict(data: Dict[str, Any]) -> MonthlyPayout:
    fields = ("dpp", "media_buyer_amount", "ops_amount", "crm_amount", "owner_amount", "net_business_profit")
    return MonthlyPayout(
        month=data["month"],
        breakdown=PayoutBreakdown(**{name: float(data.get(name) or 0) for name in fields}),
    )


class BookkeepingClient:
    """
    Async HTTP client for the financial API.

    Update calls return None and delete calls return False when the record
    does not exist; any other error status raises BookkeepingAPIError.
    """

    def __init__(
        self,
        base_url: str = None,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or config.web.api_base_url).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BookkeepingClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        allow_not_found: bool = False,
    ) -> Any:
        """
        Make one request and return the decoded JSON body.

        Returns None for a 404 when `allow_not_found` is set.

        Raises:
            BookkeepingConnectionError: Network/timeout errors
            BookkeepingAPIError: API returned an error response
        """
        if not self._client:
            await self.connect()

        request_headers = {}
        correlation_id = get_correlation_id()
        if correlation_id:
            request_headers["X-Request-ID"] = correlation_id

        try:
            with Timer(f"financial_api_{endpoint}", logger):
                response = await self._client.request(
                    method=method,
                    url=f"{self.base_url}/{endpoint}",
                    params=params,
                    json=json,
                    headers=request_headers if request_headers else None,
                )
        except httpx.TimeoutException as e:
            logger.error(f"Request timeout: {method} {endpoint}", extra={"timeout": self.timeout})
            raise BookkeepingConnectionError(f"Request timeout after {self.timeout}s", endpoint) from e
        except httpx.RequestError as e:
            logger.error(f"Request failed: {method} {endpoint} - {e}")
            raise BookkeepingConnectionError("Request failed", str(e)) from e

        if response.status_code == 404 and allow_not_found:
            return None

        if response.status_code >= 400:
            error_text = response.text[:500]
            logger.error(
                f"API error {response.status_code}: {error_text}",
                extra={"endpoint": endpoint, "status_code": response.status_code},
            )
            raise BookkeepingAPIError(
                f"API returned {response.status_code}",
                details=error_text,
                status_code=response.status_code,
            )

        if response.content:
            return response.json()
        return None

    # ═══════════════════════════════════════════════════════════════════════════
    # ORDERS & STATEMENTS
    # ═══════════════════════════════════════════════════════════════════════════

    async def get_orders(self, month: str) -> List[Order]:
        data = await self._request("GET", "orders", params={"month": month})
        return [Order.from_api(o) for o in data["orders"]]

    async def get_profit(self, month: str) -> Optional[MonthlyProfit]:
        """Stored profit snapshot; None when the month was never calculated."""
        data = await self._request("GET", "profit", params={"month": month}, allow_not_found=True)
        return MonthlyProfit.from_dict(data) if data else None

    async def calculate_profit(self, month: str) -> MonthlyProfit:
        data = await self._request("POST", "profit/calculate", params={"month": month})
        return MonthlyProfit.from_dict(data)

    async def get_payouts(self, month: str) -> Optional[MonthlyPayout]:
        data = await self._request("GET", "payouts", params={"month": month}, allow_not_found=True)
        return _payout_from_dict(data) if data else None

    async def calculate_payouts(self, month: str) -> MonthlyPayout:
        data = await self._request("POST", "payouts/calculate", params={"month": month})
        return _payout_from_dict(data)

    async def get_payout_config(self) -> PayoutConfig:
        return PayoutConfig.from_dict(await self._request("GET", "payout-config"))

    async def update_payout_config(self, changes: Dict[str, Any]) -> PayoutConfig:
        data = await self._request("PUT", "payout-config", json=_changes_payload(changes))
        return PayoutConfig.from_dict(data)

    # ═══════════════════════════════════════════════════════════════════════════
    # EXPENSES
    # ═══════════════════════════════════════════════════════════════════════════

    async def list_expenses(self, month: str) -> List[FinancialExpense]:
        data = await self._request("GET", "expenses", params={"month": month})
        return [FinancialExpense.from_dict(e) for e in data["expenses"]]

    async def create_expense(self, draft: ExpenseDraft) -> FinancialExpense:
        data = await self._request("POST", "expenses", json=_draft_payload(draft))
        return FinancialExpense.from_dict(data)

    async def update_expense(self, expense_id: str, changes: Dict[str, Any]) -> Optional[FinancialExpense]:
        data = await self._request(
            "PUT", f"expenses/{expense_id}", json=_changes_payload(changes), allow_not_found=True
        )
        return FinancialExpense.from_dict(data) if data else None

    async def delete_expense(self, expense_id: str) -> bool:
        data = await self._request("DELETE", f"expenses/{expense_id}", allow_not_found=True)
        return data is not None

    # ═══════════════════════════════════════════════════════════════════════════
    # SHIPPING
    # ═══════════════════════════════════════════════════════════════════════════

    async def list_shipping_records(self, month: str) -> List[ShippingRecord]:
        """The month's ledger as served: stored and tag-derived records."""
        data = await self._request("GET", "shipping", params={"month": month})
        return [ShippingRecord.from_dict(r) for r in data["records"]]

    async def get_shipping_ledger(self, month: str) -> Tuple[List[ShippingRecord], List[ShippingRecord]]:
        """The month's ledger and the stored records of other months shadowing it."""
        data = await self._request("GET", "shipping", params={"month": month})
        return (
            [ShippingRecord.from_dict(r) for r in data["records"]],
            [ShippingRecord.from_dict(r) for r in data.get("shadowing_records") or []],
        )

    async def create_shipping_record(self, draft: ShippingRecordDraft) -> ShippingRecord:
        data = await self._request("POST", "shipping", json=_draft_payload(draft))
        return ShippingRecord.from_dict(data)

    async def update_shipping_record(self, record_id: str, changes: Dict[str, Any]) -> Optional[ShippingRecord]:
        data = await self._request(
            "PUT", f"shipping/{record_id}", json=_changes_payload(changes), allow_not_found=True
        )
        return ShippingRecord.from_dict(data) if data else None

    async def delete_shipping_record(self, record_id: str) -> bool:
        data = await self._request("DELETE", f"shipping/{record_id}", allow_not_found=True)
        return data is not None


class FinanceDashboard:
    """
    Cached month view with optimistic edits.

    Expenses and shipping records are edited through ResourceMutations;
    DPP and payouts are recomputed from the cache on every call, never
    taken from the stored snapshot.
    """

    def __init__(
        self,
        client: BookkeepingClient,
        cache: QueryCache = None,
        scooter_default_charge: float = None,
    ):
        self.client = client
        self.cache = cache or QueryCache()
        self.scooter_default_charge = (
            config.finance.scooter_default_charge if scooter_default_charge is None else scooter_default_charge
        )
        self.expenses = ResourceMutations(self.cache, EXPENSES, match_fields=("date", "amount", "category"))
        self.shipping = ResourceMutations(
            self.cache, SHIPPING_RECORDS, match_fields=("date", "actual_shipping_cost", "type")
        )
        self._config_mutation = OptimisticMutation(self.cache, PAYOUT_CONFIG)

    async def load_month(self, month: str) -> None:
        """Fetch everything the month's figures depend on into the cache."""
        orders, (records, shadowing), expenses, profit, payout_config = await asyncio.gather(
            self.client.get_orders(month),
            self.client.get_shipping_ledger(month),
            self.client.list_expenses(month),
            self.client.get_profit(month),
            self.client.get_payout_config(),
        )
        self.cache.set((ORDERS, month), orders)
        self.cache.set((EXPENSES, month), expenses)
        # Tag-derived records are rebuilt from the cached orders
        self.cache.set((SHIPPING_RECORDS, month), [r for r in records if not r.is_from_tag])
        self.cache.set((SHIPPING_SHADOWS, month), shadowing)
        self.cache.set((MONTHLY_PROFIT, month), profit)
        self.cache.set(PAYOUT_CONFIG_KEY, payout_config)
        logger.info(f"Loaded {month}: {len(orders)} orders, {len(expenses)} expenses, {len(records)} shipping records")

    def invalidate_month(self, month: str) -> None:
        for resource in (ORDERS, EXPENSES, SHIPPING_RECORDS, SHIPPING_SHADOWS, MONTHLY_PROFIT):
            self.cache.invalidate((resource, month))

    # ─── Derived figures ─────────────────────────────────────────────────────

    def figures(self, month: str) -> DerivedFigures:
        return recompute_figures(self.cache, month, self.scooter_default_charge)

    def payout(self, month: str) -> PayoutBreakdown:
        return recompute_payout(self.cache, month, scooter_default_charge=self.scooter_default_charge)

    def stored_profit(self, month: str) -> Optional[MonthlyProfit]:
        return self.cache.get((MONTHLY_PROFIT, month))

    def expense_trend(self, month: str, months: int = None) -> List[Dict[str, Any]]:
        return expense_trend(self.cache, month, months or config.finance.trend_months)

    # ─── Expenses ────────────────────────────────────────────────────────────

    async def create_expense(self, draft: ExpenseDraft) -> FinancialExpense:
        pending = FinancialExpense(id="", **dataclasses.asdict(draft))
        return await self.expenses.create(pending, lambda: self.client.create_expense(draft))

    async def update_expense(self, expense_id: str, changes: Dict[str, Any]) -> FinancialExpense:
        return await self.expenses.update(
            expense_id, changes, lambda: self.client.update_expense(expense_id, changes)
        )

    async def delete_expense(self, expense_id: str) -> bool:
        return await self.expenses.delete(expense_id, lambda: self.client.delete_expense(expense_id))

    # ─── Shipping records ────────────────────────────────────────────────────

    async def create_shipping_record(self, draft: ShippingRecordDraft) -> ShippingRecord:
        pending = ShippingRecord(id="", **dataclasses.asdict(draft))
        return await self.shipping.create(pending, lambda: self.client.create_shipping_record(draft))

    async def update_shipping_record(self, record_id: str, changes: Dict[str, Any]) -> ShippingRecord:
        saved = await self.shipping.update(
            record_id, changes, lambda: self.client.update_shipping_record(record_id, changes)
        )
        self._sync_shadows(record_id, saved)
        return saved

    async def delete_shipping_record(self, record_id: str) -> bool:
        deleted = await self.shipping.delete(record_id, lambda: self.client.delete_shipping_record(record_id))
        self._sync_shadows(record_id, None)
        return deleted

    def _sync_shadows(self, record_id: str, saved: Optional[ShippingRecord]) -> None:
        """Keep shadowing copies held for other months in step with the saved record."""
        for key in self.cache.keys(SHIPPING_SHADOWS):
            records = self.cache.get(key) or []
            if any(r.id == record_id for r in records):
                self.cache.set(key, [r for r in records if r.id != record_id] + ([saved] if saved else []))

    # ─── Payout config ───────────────────────────────────────────────────────

    async def update_payout_config(self, changes: Dict[str, Any]) -> PayoutConfig:
        """Apply new percentages at once so payouts re-derive before the save returns."""
        current = self.cache.get(PAYOUT_CONFIG_KEY) or PayoutConfig()
        speculative = dataclasses.replace(current, **{k: v for k, v in changes.items() if v is not None})

        def apply(cache: QueryCache) -> None:
            cache.set(PAYOUT_CONFIG_KEY, speculative)

        def commit(cache: QueryCache, saved: PayoutConfig) -> None:
            cache.set(PAYOUT_CONFIG_KEY, saved)

        return await self._config_mutation.run(
            "update",
            [PAYOUT_CONFIG_KEY],
            apply,
            lambda: self.client.update_payout_config(changes),
            commit,
            missing="current",
        )
