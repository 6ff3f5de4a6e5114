"""
Exchange rates: recording, lookup for analytics, and the CBR daily feed.

Rates are append-only rows in the store. Analytics read the latest row via
StoredExchangeRateProvider and fall back to a fixed rate when none exists.
The CBR feed is only consulted by the explicit startup step
``init_exchange_rate``, never implicitly on import.
"""
from datetime import date
from typing import Optional

import httpx

from replenish.config import AnalyticsConfig, CurrencyConfig, config
from replenish.exceptions import (
    UpstreamAPIError,
    UpstreamConnectionError,
    UpstreamDataError,
    UpstreamError,
    ValidationError,
)
from replenish.models import ExchangeRate
from replenish.observability import get_logger
from replenish.store import Store

logger = get_logger(__name__)


def apply_buffer(rate: float, buffer_percent: float) -> float:
    """Raw rate marked up by buffer_percent."""
    return round(rate * (1 + buffer_percent / 100), 6)


async def record_exchange_rate(
    store: Store,
    rate: float,
    buffer_percent: Optional[float] = None,
    currency: Optional[str] = None,
    source: str = "manual",
    effective_date: Optional[date] = None,
) -> ExchangeRate:
    """
    Append a new exchange rate row.

    Raises:
        ValidationError: rate is not positive or buffer is negative
    """
    if buffer_percent is None:
        buffer_percent = config.currency.buffer_percent
    currency = currency or config.analytics.cost_currency

    if rate is None or rate <= 0:
        raise ValidationError("rate", "must be a positive number", rate)
    if buffer_percent < 0:
        raise ValidationError("buffer_percent", "must not be negative", buffer_percent)

    row = ExchangeRate(
        currency=currency,
        rate=round(float(rate), 6),
        rate_with_buffer=apply_buffer(float(rate), buffer_percent),
        buffer_percent=float(buffer_percent),
        source=source,
        effective_date=effective_date or date.today(),
    )
    await store.add_exchange_rate(row)
    return row


class StoredExchangeRateProvider:
    """Latest stored rate-with-buffer, or the configured fallback."""

    def __init__(self, store: Store, settings: Optional[AnalyticsConfig] = None):
        self.store = store
        self.settings = settings or config.analytics

    async def get_rate(self, currency: Optional[str] = None) -> float:
        currency = currency or self.settings.cost_currency
        latest = await self.store.get_latest_exchange_rate(currency)
        if latest is None:
            logger.warning(
                f"No stored {currency} rate, using fallback {self.settings.fallback_exchange_rate}"
            )
            return self.settings.fallback_exchange_rate
        return latest.rate_with_buffer


class CBRRateFetcher:
    """Reads RUB-per-unit rates from the CBR daily JSON feed."""

    def __init__(
        self,
        settings: Optional[CurrencyConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or config.currency
        self._transport = transport

    async def fetch_rate(self, currency: str = "TRY") -> float:
        """
        RUB per one unit of currency (feed quotes Value per Nominal units).

        Raises:
            UpstreamConnectionError: feed unreachable or timed out
            UpstreamAPIError: non-success HTTP status
            UpstreamDataError: currency missing or malformed
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout, transport=self._transport
            ) as client:
                response = await client.get(self.settings.cbr_url)
        except httpx.TimeoutException as e:
            raise UpstreamConnectionError(
                f"CBR request timeout after {self.settings.request_timeout}s"
            ) from e
        except httpx.RequestError as e:
            raise UpstreamConnectionError("CBR request failed", details=str(e)) from e

        if response.status_code >= 400:
            raise UpstreamAPIError(
                f"CBR returned {response.status_code}",
                status_code=response.status_code,
                details=response.text[:200],
            )

        try:
            quote = response.json()["Valute"][currency]
            rate = float(quote["Value"]) / float(quote.get("Nominal") or 1)
        except (ValueError, KeyError, TypeError, ZeroDivisionError) as e:
            raise UpstreamDataError(
                f"{currency} rate missing from CBR response",
                details=str(e),
                expected="Valute.<code>.Value",
            ) from e

        if rate <= 0:
            raise UpstreamDataError(f"Non-positive {currency} rate from CBR", got=str(rate))

        logger.info(f"CBR rate: 1 {currency} = {rate:.4f} RUB")
        return rate


async def init_exchange_rate(
    store: Store,
    fetcher: Optional[CBRRateFetcher] = None,
    currency: Optional[str] = None,
) -> Optional[ExchangeRate]:
    """
    Startup step: fetch today's rate from CBR and record it.

    Returns None when the feed is unavailable; analytics then use the latest
    stored rate or the configured fallback.
    """
    fetcher = fetcher or CBRRateFetcher()
    currency = currency or config.analytics.cost_currency
    try:
        rate = await fetcher.fetch_rate(currency)
    except UpstreamError as e:
        logger.warning(f"Exchange rate initialization failed, using stored/fallback rate: {e}")
        return None

    return await record_exchange_rate(
        store,
        rate,
        buffer_percent=fetcher.settings.buffer_percent,
        currency=currency,
        source="cbr",
    )
