"""
Replenishment analytics and upstream synchronization engine.

This package contains:
- client: Async client for the upstream orders/products API
- store: DuckDB store composed from repository mixins
- syncers / sync_service: Idempotent reconciliation of upstream records
- scheduler: 5-minute sync cadence plus manual trigger
- analytics: Per-product margin, stock-out and purchasing figures
- currency: Exchange rate recording and lookup
"""

# Import in dependency order
from replenish.exceptions import (
    UpstreamError,
    UpstreamConnectionError,
    UpstreamAPIError,
    UpstreamDataError,
    ValidationError,
    SyncAlreadyRunningError,
)

from replenish.config import config, ConfigurationError, validate_config

from replenish.validators import (
    validate_date_string,
    validate_date_range,
    validate_rate,
)

__all__ = [
    # Exceptions
    "UpstreamError",
    "UpstreamConnectionError",
    "UpstreamAPIError",
    "UpstreamDataError",
    "ValidationError",
    "SyncAlreadyRunningError",
    # Config
    "config",
    "ConfigurationError",
    "validate_config",
    # Validators
    "validate_date_string",
    "validate_date_range",
    "validate_rate",
]
