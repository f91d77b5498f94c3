"""Tests for the pricing-side rates client."""

from datetime import UTC, datetime
from decimal import Decimal

import httpx
import pytest
from httpx import AsyncClient

from fxrates.client import RatesClient
from fxrates.core.cache import HttpRateTableFetcher, RateTableCache
from fxrates.core.exceptions import RateTableUnavailable, RateUnavailable, UnknownCurrency
from fxrates.models.exchange_rate import ExchangeRate, RateSource
from fxrates.schemas.currency import CurrencyResponse
from fxrates.schemas.exchange_rate import ExchangeRateResponse, RateTableResponse
from main import app


@pytest.fixture
def rates_client(client: AsyncClient) -> RatesClient:
    """RatesClient reading the rate table from the app in-process.

    Depends on ``client`` so the database and clock overrides are installed.
    """
    fetcher = HttpRateTableFetcher(
        url="http://test/api/v1/rates/", transport=httpx.ASGITransport(app=app)
    )
    return RatesClient(RateTableCache(fetcher, ttl=300))


@pytest.mark.integration
class TestRatesClient:
    async def test_convert_direct_and_composed(
        self, rates_client: RatesClient, stored_rates: dict[tuple[str, str], ExchangeRate]
    ) -> None:
        assert await rates_client.convert(Decimal("25"), "USD", "IDR") == Decimal("400000")
        assert await rates_client.convert(Decimal("100"), "EUR", "USD") == Decimal("109.38")
        assert rates_client.cache.get_stats()["fetches"] == 1

    async def test_same_currency_skips_fetch(self, rates_client: RatesClient) -> None:
        amount = Decimal("19.999")

        assert await rates_client.convert(amount, "usd", "USD") is amount
        assert rates_client.cache.get_stats()["fetches"] == 0

    async def test_missing_rate_raises(
        self, rates_client: RatesClient, currencies: dict
    ) -> None:
        with pytest.raises(RateUnavailable):
            await rates_client.convert(Decimal("1"), "USD", "IDR")

    async def test_unknown_currency_raises(
        self, rates_client: RatesClient, stored_rates: dict[tuple[str, str], ExchangeRate]
    ) -> None:
        with pytest.raises(UnknownCurrency):
            await rates_client.convert(Decimal("1"), "GBP", "IDR")

    async def test_cached_table_survives_server_changes_until_cleared(
        self,
        client: AsyncClient,
        rates_client: RatesClient,
        stored_rates: dict[tuple[str, str], ExchangeRate],
    ) -> None:
        assert await rates_client.convert(Decimal("1"), "USD", "IDR") == Decimal("16000")

        response = await client.put("/api/v1/rates/USD/IDR", json={"rate": "16500"})
        assert response.status_code == 200

        assert await rates_client.convert(Decimal("1"), "USD", "IDR") == Decimal("16000")
        rates_client.clear_cache()
        assert await rates_client.convert(Decimal("1"), "USD", "IDR") == Decimal("16500")

    async def test_is_fresh(
        self, rates_client: RatesClient, stored_rates: dict[tuple[str, str], ExchangeRate]
    ) -> None:
        assert await rates_client.is_fresh() is True


@pytest.mark.unit
class TestRatesClientFailures:
    async def test_fetch_failure_propagates(self) -> None:
        async def fetch():
            raise RateTableUnavailable("connection refused")

        client = RatesClient(RateTableCache(fetch, ttl=300))

        with pytest.raises(RateTableUnavailable):
            await client.convert(Decimal("1"), "USD", "IDR")

    async def test_stale_table_still_converts(self) -> None:
        table = RateTableResponse(
            base_currency="IDR",
            currencies=[
                CurrencyResponse(
                    code="IDR", name="Rupiah", symbol="Rp", decimal_places=0, is_base=True, is_active=True
                ),
                CurrencyResponse(
                    code="USD", name="US Dollar", symbol="$", is_base=False, is_active=True
                ),
            ],
            rates=[
                ExchangeRateResponse(
                    from_currency="USD",
                    to_currency="IDR",
                    rate=Decimal("16000"),
                    source=RateSource.SEED,
                    last_updated=datetime(2025, 12, 1, tzinfo=UTC),
                    is_fresh=False,
                )
            ],
            is_fresh=False,
            max_age_seconds=28800,
            generated_at=datetime(2026, 1, 15, tzinfo=UTC),
        )

        async def fetch():
            return table

        client = RatesClient(RateTableCache(fetch, ttl=300))

        assert await client.is_fresh() is False
        assert await client.convert(Decimal("2"), "USD", "IDR") == Decimal("32000")
