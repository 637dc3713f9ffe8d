"""
Async client for the Shopify Admin REST order API.

Orders are read-only input to the reconciliation engine; nothing is written
back to Shopify.

Usage:
    async with ShopifyClient() as client:
        orders = await client.get_orders(created_at_min=start, created_at_max=end)
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from bookkeeping.config import config
from bookkeeping.exceptions import ShopifyError
from bookkeeping.models import Order
from bookkeeping.observability import Timer, get_correlation_id, get_logger

logger = get_logger(__name__)

# Fields the reconciliation needs; keeps pages small
ORDER_FIELDS = ",".join([
    "id", "name", "total_price", "created_at", "tags", "line_items",
    "shipping_lines", "total_shipping_price_set", "customer", "shipping_address",
])


class ShopifyClient:
    """
    Paginated reader for `orders.json`.

    Pagination follows the cursor in the `Link: <...>; rel="next"` header;
    follow-up requests carry only the cursor URL.
    """

    def __init__(
        self,
        shop_domain: str = None,
        access_token: str = None,
        api_version: str = None,
        timeout: float = None,
        page_limit: int = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = config.shopify
        self.shop_domain = shop_domain or settings.shop_domain
        self.access_token = access_token or settings.access_token
        self.api_version = api_version or settings.api_version
        self.timeout = timeout or settings.request_timeout
        self.page_limit = page_limit or settings.page_limit
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        if not self.shop_domain or not self.access_token:
            raise ValueError("SHOPIFY_SHOP_DOMAIN and SHOPIFY_ACCESS_TOKEN are required")

    @property
    def base_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}"

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Accept": "application/json",
        }

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.headers,
                timeout=self.timeout,
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ShopifyClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """GET one page. Raises ShopifyError on HTTP or network failure."""
        if not self._client:
            await self.connect()

        request_headers = {}
        correlation_id = get_correlation_id()
        if correlation_id:
            request_headers["X-Request-ID"] = correlation_id

        try:
            with Timer("shopify_orders_page", logger):
                response = await self._client.get(
                    url,
                    params=params,
                    headers=request_headers if request_headers else None,
                )
        except httpx.TimeoutException as e:
            logger.error(f"Shopify request timeout: {url}", extra={"timeout": self.timeout})
            raise ShopifyError(f"Request timeout after {self.timeout}s", url) from e
        except httpx.RequestError as e:
            logger.error(f"Shopify request failed: {url} - {e}")
            raise ShopifyError("Request failed", str(e)) from e

        if response.status_code >= 400:
            error_text = response.text[:500]
            logger.error(
                f"Shopify API error {response.status_code}: {error_text}",
                extra={"status_code": response.status_code},
            )
            raise ShopifyError(
                f"Shopify returned {response.status_code}",
                details=error_text,
                status_code=response.status_code,
            )
        return response

    async def get_orders(
        self,
        created_at_min: Optional[datetime] = None,
        created_at_max: Optional[datetime] = None,
    ) -> List[Order]:
        """All orders (any status) created inside the optional window."""
        params: Dict[str, Any] = {
            "status": "any",
            "limit": self.page_limit,
            "fields": ORDER_FIELDS,
        }
        if created_at_min:
            params["created_at_min"] = created_at_min.isoformat()
        if created_at_max:
            params["created_at_max"] = created_at_max.isoformat()

        orders: List[Order] = []
        url: Optional[str] = f"{self.base_url}/orders.json"
        pages = 0

        while url:
            response = await self._request(url, params)
            payload = response.json()
            orders.extend(Order.from_api(o) for o in payload.get("orders") or [])
            pages += 1

            url = response.links.get("next", {}).get("url")
            params = None

        logger.info(f"Fetched {len(orders)} orders from Shopify ({pages} pages)")
        return orders


# Singleton instance
_client_instance: Optional[ShopifyClient] = None


def get_order_source() -> ShopifyClient:
    """Get singleton Shopify client instance."""
    global _client_instance
    if _client_instance is None:
        _client_instance = ShopifyClient()
    return _client_instance


async def close_order_source() -> None:
    global _client_instance
    if _client_instance:
        await _client_instance.close()
        _client_instance = None
