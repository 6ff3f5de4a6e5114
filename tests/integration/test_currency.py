"""
Integration tests for exchange rate recording and the CBR feed.
"""
from datetime import date

import httpx
import pytest

from replenish.config import CurrencyConfig, config
from replenish.currency import (
    CBRRateFetcher,
    StoredExchangeRateProvider,
    apply_buffer,
    init_exchange_rate,
    record_exchange_rate,
)
from replenish.exceptions import UpstreamAPIError, UpstreamDataError, ValidationError

CBR_PAYLOAD = {
    "Date": "2025-06-05T11:30:00+03:00",
    "Valute": {
        "TRY": {"CharCode": "TRY", "Nominal": 10, "Value": 20.1234},
        "USD": {"CharCode": "USD", "Nominal": 1, "Value": 78.5},
    },
}

SETTINGS = CurrencyConfig(cbr_url="https://cbr.example.com/daily_json.js", buffer_percent=5.0)


def cbr_fetcher(handler) -> CBRRateFetcher:
    return CBRRateFetcher(settings=SETTINGS, transport=httpx.MockTransport(handler))


def test_apply_buffer():
    assert apply_buffer(2.0, 5) == 2.1
    assert apply_buffer(2.0, 0) == 2.0


class TestRecordExchangeRate:
    """Tests for record_exchange_rate."""

    @pytest.mark.asyncio
    async def test_append_only(self, store):
        """Each call adds a row; the latest by effective date wins."""
        await record_exchange_rate(store, 2.0, buffer_percent=0, effective_date=date(2025, 6, 1))
        await record_exchange_rate(store, 2.2, buffer_percent=10, effective_date=date(2025, 6, 2))

        latest = await store.get_latest_exchange_rate("TRY")

        assert latest.rate == 2.2
        assert latest.rate_with_buffer == 2.42
        assert latest.buffer_percent == 10

    @pytest.mark.asyncio
    async def test_defaults_from_config(self, store):
        """Omitted buffer and currency come from settings."""
        row = await record_exchange_rate(store, 2.0)

        assert row.currency == config.analytics.cost_currency
        assert row.buffer_percent == config.currency.buffer_percent
        assert row.rate_with_buffer == apply_buffer(2.0, config.currency.buffer_percent)

    @pytest.mark.asyncio
    async def test_same_day_later_insert_wins(self, store):
        await record_exchange_rate(store, 2.0, buffer_percent=0, effective_date=date(2025, 6, 1))
        await record_exchange_rate(store, 3.0, buffer_percent=0, effective_date=date(2025, 6, 1))

        assert (await store.get_latest_exchange_rate("TRY")).rate == 3.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rate,buffer", [(0, 5), (-1.5, 5), (2.0, -1)])
    async def test_invalid_input(self, store, rate, buffer):
        with pytest.raises(ValidationError):
            await record_exchange_rate(store, rate, buffer_percent=buffer)

    @pytest.mark.asyncio
    async def test_provider_fallback(self, store):
        provider = StoredExchangeRateProvider(store)
        assert await provider.get_rate("TRY") == 2.1264


class TestCBRRateFetcher:
    """Tests for the CBR daily feed."""

    @pytest.mark.asyncio
    async def test_rate_per_unit(self):
        """Value is quoted per Nominal units."""
        fetcher = cbr_fetcher(lambda request: httpx.Response(200, json=CBR_PAYLOAD))

        rate = await fetcher.fetch_rate("TRY")

        assert rate == pytest.approx(2.01234)

    @pytest.mark.asyncio
    async def test_missing_currency(self):
        fetcher = cbr_fetcher(lambda request: httpx.Response(200, json={"Valute": {}}))

        with pytest.raises(UpstreamDataError):
            await fetcher.fetch_rate("TRY")

    @pytest.mark.asyncio
    async def test_http_error(self):
        fetcher = cbr_fetcher(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(UpstreamAPIError):
            await fetcher.fetch_rate("TRY")


class TestInitExchangeRate:
    """Tests for the startup rate initialization."""

    @pytest.mark.asyncio
    async def test_records_buffered_cbr_rate(self, store):
        fetcher = cbr_fetcher(lambda request: httpx.Response(200, json=CBR_PAYLOAD))

        row = await init_exchange_rate(store, fetcher=fetcher, currency="USD")

        assert row.source == "cbr"
        latest = await store.get_latest_exchange_rate("USD")
        assert latest.rate == 78.5
        assert latest.rate_with_buffer == pytest.approx(82.425)

    @pytest.mark.asyncio
    async def test_feed_down_keeps_fallback(self, store):
        """A failed fetch records nothing and does not raise."""
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        row = await init_exchange_rate(store, fetcher=cbr_fetcher(handler), currency="TRY")

        assert row is None
        assert await store.get_latest_exchange_rate("TRY") is None
