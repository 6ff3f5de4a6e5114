"""
Centralized configuration for the replenishment engine.

This module provides a single source of truth for all configuration values.
Configuration is loaded from environment variables with sensible defaults.

Usage:
    from replenish.config import config

    orders_url = config.upstream.orders_url
    lead_time = config.analytics.lead_time_days
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Tuple

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class UpstreamConfig:
    """Upstream commerce API configuration."""

    base_url: str = field(default_factory=lambda: os.getenv("COMMERCE_API_URL", "").rstrip("/"))
    orders_path: str = field(default_factory=lambda: os.getenv("COMMERCE_ORDERS_URL", ""))
    products_path: str = field(default_factory=lambda: os.getenv("COMMERCE_PRODUCTS_URL", ""))
    token: str = field(default_factory=lambda: os.getenv("COMMERCE_API_TOKEN", ""))
    # Empty scheme sends the raw token, e.g. "Bearer" -> "Bearer <token>"
    auth_scheme: str = field(default_factory=lambda: os.getenv("COMMERCE_AUTH_SCHEME", ""))
    request_timeout: float = field(
        default_factory=lambda: _env_float("COMMERCE_REQUEST_TIMEOUT", 30.0)
    )

    @property
    def orders_url(self) -> str:
        return self._resolve(self.orders_path, "orders")

    @property
    def products_url(self) -> str:
        return self._resolve(self.products_path, "products")

    def _resolve(self, explicit: str, default_endpoint: str) -> str:
        """Explicit URL wins; otherwise derive from base URL."""
        if explicit.startswith("http://") or explicit.startswith("https://"):
            return explicit
        if not self.base_url:
            return ""
        endpoint = explicit.strip("/") or default_endpoint
        return f"{self.base_url}/{endpoint}"


@dataclass(frozen=True)
class StoreConfig:
    """DuckDB storage configuration."""

    path: str = field(default_factory=lambda: os.getenv("DUCKDB_PATH", "data/replenish.duckdb"))


@dataclass(frozen=True)
class SchedulerConfig:
    """Sync scheduler configuration."""

    interval_minutes: int = 5
    timezone: str = field(default_factory=lambda: os.getenv("TZ", "UTC"))
    run_on_start: bool = True

    @property
    def cron_expression(self) -> str:
        return f"*/{self.interval_minutes} * * * *"


@dataclass(frozen=True)
class AnalyticsConfig:
    """Product analytics and purchasing configuration."""

    cost_currency: str = "TRY"
    fallback_exchange_rate: float = 2.1264
    delivery_cost_per_unit: float = 350.0
    no_consumption_days: int = 999
    critical_days_threshold: int = 7
    top_performers_limit: int = 5

    # Expense categories mapped onto analytics buckets
    expense_categories: Dict[str, str] = field(default_factory=lambda: {
        "logistics": "Logistics",
        "advertising": "Advertising",
        "other": "Other",
    })

    # Order statuses excluded from sales aggregates (compared lowercase)
    excluded_statuses: Tuple[str, ...] = ("cancelled", "refunded")

    # Purchase recommendation defaults
    lead_time_days: int = 14
    min_stock: int = 5


@dataclass(frozen=True)
class CurrencyConfig:
    """Exchange rate source configuration."""

    cbr_url: str = field(
        default_factory=lambda: os.getenv(
            "CBR_DAILY_URL", "https://www.cbr-xml-daily.ru/daily_json.js"
        )
    )
    buffer_percent: float = 5.0
    request_timeout: float = 10.0


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    currency: CurrencyConfig = field(default_factory=CurrencyConfig)


# Global config instance
config = AppConfig()


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(require_upstream: bool = True, app_config: AppConfig = None) -> None:
    """
    Validate that all required configuration is present.

    Call this on application startup to fail fast with clear error messages
    instead of cryptic runtime failures.

    Args:
        require_upstream: If True, validate upstream URLs and token
        app_config: Config to validate (defaults to the global instance)

    Raises:
        ConfigurationError: If required configuration is missing
    """
    cfg = app_config or config
    errors = []

    if require_upstream:
        if not cfg.upstream.orders_url:
            errors.append("COMMERCE_ORDERS_URL (or COMMERCE_API_URL) is required but not set")
        if not cfg.upstream.products_url:
            errors.append("COMMERCE_PRODUCTS_URL (or COMMERCE_API_URL) is required but not set")
        if not cfg.upstream.token:
            errors.append("COMMERCE_API_TOKEN is required but not set")

    if cfg.upstream.request_timeout <= 0:
        errors.append("COMMERCE_REQUEST_TIMEOUT must be positive")

    if cfg.scheduler.interval_minutes <= 0 or 60 % cfg.scheduler.interval_minutes:
        errors.append("Scheduler interval must evenly divide an hour")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
