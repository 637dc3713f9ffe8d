"""
Centralized configuration for the bookkeeping service.

Configuration is loaded from environment variables (and a local .env file)
with sensible defaults.

Usage:
    from bookkeeping.config import config

    db_path = config.store.db_path
    flyer_cost = config.finance.flyer_cost_per_order
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


@dataclass(frozen=True)
class StoreConfig:
    """DuckDB persistence configuration."""

    db_path: str = field(
        default_factory=lambda: os.getenv("BOOKKEEPING_DB_PATH", "data/bookkeeping.duckdb")
    )


@dataclass(frozen=True)
class ShopifyConfig:
    """Shopify Admin API configuration (order read API)."""

    shop_domain: str = field(default_factory=lambda: os.getenv("SHOPIFY_SHOP_DOMAIN", ""))
    access_token: str = field(default_factory=lambda: os.getenv("SHOPIFY_ACCESS_TOKEN", ""))
    api_version: str = field(default_factory=lambda: os.getenv("SHOPIFY_API_VERSION", "2024-01"))
    page_limit: int = 250

    # Orders created this long before a period starts can still be paid inside it
    order_lookback_days: int = field(
        default_factory=lambda: int(os.getenv("SHOPIFY_ORDER_LOOKBACK_DAYS", "120"))
    )
    request_timeout: float = 30.0

    @property
    def base_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}"


@dataclass(frozen=True)
class FinanceConfig:
    """Reconciliation constants."""

    currency: str = "EGP"

    # Printed flyer packed with every order, booked into COGS (0 disables it)
    flyer_cost_per_order: float = field(
        default_factory=lambda: _env_float("FLYER_COST_PER_ORDER", 0.0)
    )

    # Charged to the customer for scooter delivery when the order has no shipping line
    scooter_default_charge: float = field(
        default_factory=lambda: _env_float("SCOOTER_DEFAULT_CHARGE", 50.0)
    )

    # Payout config used until the user saves one
    default_media_buyer_percent: float = 3.0
    default_ops_percent: float = 10.0
    default_crm_percent: float = 7.5

    # Months shown in the expense trend chart
    trend_months: int = 6


@dataclass(frozen=True)
class WebConfig:
    """Web API configuration."""

    host: str = "0.0.0.0"
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8080")))
    api_base_url: str = field(
        default_factory=lambda: os.getenv("BOOKKEEPING_API_URL", "http://localhost:8080/api/financial")
    )

    # Rate limiting
    rate_limit_per_minute: int = 30
    cors_origins: List[str] = field(
        default_factory=lambda: [o for o in os.getenv("CORS_ORIGINS", "").split(",") if o]
    )


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    store: StoreConfig = field(default_factory=StoreConfig)
    shopify: ShopifyConfig = field(default_factory=ShopifyConfig)
    finance: FinanceConfig = field(default_factory=FinanceConfig)
    web: WebConfig = field(default_factory=WebConfig)


# Global config instance
config = AppConfig()

VERSION = config.version


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(require_shopify: bool = True, app_config: AppConfig = None) -> None:
    """
    Validate that all required configuration is present.

    Call this on application startup to fail fast with clear error messages
    instead of cryptic runtime failures.

    Args:
        require_shopify: If True, validate Shopify credentials (order read API)
        app_config: Config to validate (defaults to the global instance)

    Raises:
        ConfigurationError: If required configuration is missing
    """
    cfg = app_config or config
    errors = []

    if require_shopify:
        if not cfg.shopify.shop_domain:
            errors.append("SHOPIFY_SHOP_DOMAIN is required but not set")
        if not cfg.shopify.access_token:
            errors.append("SHOPIFY_ACCESS_TOKEN is required but not set")

    if cfg.shopify.shop_domain and "://" in cfg.shopify.shop_domain:
        errors.append("SHOPIFY_SHOP_DOMAIN must be a bare domain (e.g. my-shop.myshopify.com)")

    if cfg.finance.flyer_cost_per_order < 0:
        errors.append("FLYER_COST_PER_ORDER must not be negative")

    if cfg.finance.scooter_default_charge < 0:
        errors.append("SCOOTER_DEFAULT_CHARGE must not be negative")

    if not cfg.store.db_path:
        errors.append("BOOKKEEPING_DB_PATH must not be empty")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
