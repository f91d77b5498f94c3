"""Tests for the client-side rate table cache."""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal

import httpx
import pytest

from fxrates.core.cache import HttpRateTableFetcher, RateTableCache
from fxrates.core.exceptions import RateTableUnavailable
from fxrates.models.exchange_rate import RateSource
from fxrates.schemas.currency import CurrencyResponse
from fxrates.schemas.exchange_rate import ExchangeRateResponse, RateTableResponse

pytestmark = pytest.mark.unit

GENERATED_AT = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


def make_table(usd_to_idr: str = "16000") -> RateTableResponse:
    return RateTableResponse(
        base_currency="IDR",
        currencies=[
            CurrencyResponse(
                code="IDR", name="Rupiah", symbol="Rp", decimal_places=0, is_base=True, is_active=True
            ),
            CurrencyResponse(
                code="USD", name="US Dollar", symbol="$", decimal_places=2, is_base=False, is_active=True
            ),
        ],
        rates=[
            ExchangeRateResponse(
                from_currency="USD",
                to_currency="IDR",
                rate=Decimal(usd_to_idr),
                source=RateSource.SEED,
                last_updated=GENERATED_AT,
                is_fresh=True,
            )
        ],
        is_fresh=True,
        max_age_seconds=28800,
        generated_at=GENERATED_AT,
    )


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingFetch:
    """Fetch stub returning queued results (tables or exceptions)."""

    def __init__(self, *results, delay: float = 0.0) -> None:
        self.results = list(results)
        self.delay = delay
        self.calls = 0

    async def __call__(self) -> RateTableResponse:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestTtl:
    async def test_serves_cached_table_within_ttl(self, clock: FakeClock) -> None:
        fetch = CountingFetch(make_table())
        cache = RateTableCache(fetch, ttl=300, clock=clock)

        first = await cache.get_rates()
        clock.advance(299)
        second = await cache.get_rates()

        assert first is second
        assert fetch.calls == 1
        assert cache.get_stats()["hits"] == 1

    async def test_refetches_after_ttl(self, clock: FakeClock) -> None:
        fetch = CountingFetch(make_table("16000"), make_table("16500"))
        cache = RateTableCache(fetch, ttl=300, clock=clock)

        await cache.get_rates()
        clock.advance(300)
        table = await cache.get_rates()

        assert fetch.calls == 2
        assert table.rates[0].rate == Decimal("16500")

    async def test_invalidate_bypasses_ttl(self, clock: FakeClock) -> None:
        fetch = CountingFetch(make_table())
        cache = RateTableCache(fetch, ttl=300, clock=clock)

        await cache.get_rates()
        cache.invalidate()
        await cache.get_rates()
        await cache.get_rates()

        assert fetch.calls == 2

    async def test_invalidate_during_fetch_forces_another_fetch(self, clock: FakeClock) -> None:
        fetch = CountingFetch(make_table("16000"), make_table("16500"), delay=0.05)
        cache = RateTableCache(fetch, ttl=300, clock=clock)

        first = asyncio.create_task(cache.get_rates())
        await asyncio.sleep(0.01)
        cache.invalidate()
        assert (await first).rates[0].rate == Decimal("16000")

        table = await cache.get_rates()

        assert fetch.calls == 2
        assert table.rates[0].rate == Decimal("16500")
        assert await cache.get_rates() is table
        assert fetch.calls == 2

    async def test_caller_after_invalidate_does_not_join_outdated_fetch(
        self, clock: FakeClock
    ) -> None:
        fetch = CountingFetch(make_table("16000"), make_table("16500"), delay=0.05)
        cache = RateTableCache(fetch, ttl=300, clock=clock)

        outdated = asyncio.create_task(cache.get_rates())
        await asyncio.sleep(0.01)
        cache.invalidate()
        current = await cache.get_rates()

        assert (await outdated).rates[0].rate == Decimal("16000")
        assert current.rates[0].rate == Decimal("16500")
        assert cache.table is current

    async def test_reset_drops_everything(self, clock: FakeClock) -> None:
        fetch = CountingFetch(make_table())
        cache = RateTableCache(fetch, ttl=300, clock=clock)
        await cache.get_rates()

        cache.reset()

        assert cache.table is None
        assert cache.get_stats()["fetches"] == 0
        await cache.get_rates()
        assert fetch.calls == 2


class TestSingleFlight:
    async def test_concurrent_misses_share_one_fetch(self, clock: FakeClock) -> None:
        fetch = CountingFetch(make_table(), delay=0.05)
        cache = RateTableCache(fetch, ttl=300, clock=clock)

        tables = await asyncio.gather(*(cache.get_rates() for _ in range(20)))

        assert fetch.calls == 1
        assert all(table is tables[0] for table in tables)

    async def test_concurrent_misses_after_expiry_share_one_fetch(self, clock: FakeClock) -> None:
        fetch = CountingFetch(make_table(), delay=0.05)
        cache = RateTableCache(fetch, ttl=300, clock=clock)
        await cache.get_rates()
        clock.advance(301)

        await asyncio.gather(*(cache.get_rates() for _ in range(10)))

        assert fetch.calls == 2

    async def test_concurrent_callers_all_see_failure(self, clock: FakeClock) -> None:
        fetch = CountingFetch(RateTableUnavailable("down"), delay=0.05)
        cache = RateTableCache(fetch, ttl=300, clock=clock)

        results = await asyncio.gather(
            *(cache.get_rates() for _ in range(5)), return_exceptions=True
        )

        assert fetch.calls == 1
        assert all(isinstance(result, RateTableUnavailable) for result in results)

    async def test_cancelled_caller_does_not_cancel_shared_fetch(self, clock: FakeClock) -> None:
        fetch = CountingFetch(make_table(), delay=0.05)
        cache = RateTableCache(fetch, ttl=300, clock=clock)

        doomed = asyncio.create_task(cache.get_rates())
        survivor = asyncio.create_task(cache.get_rates())
        await asyncio.sleep(0.01)
        doomed.cancel()

        table = await survivor
        assert table.base_currency == "IDR"
        assert fetch.calls == 1


class TestFailures:
    async def test_failed_refresh_keeps_last_good_table(self, clock: FakeClock) -> None:
        good = make_table()
        fetch = CountingFetch(good, RateTableUnavailable("upstream 500"), make_table("17000"))
        cache = RateTableCache(fetch, ttl=300, clock=clock)

        await cache.get_rates()
        clock.advance(301)
        with pytest.raises(RateTableUnavailable) as exc_info:
            await cache.get_rates()

        assert exc_info.value.retryable
        assert cache.table is good

        table = await cache.get_rates()
        assert table.rates[0].rate == Decimal("17000")
        assert cache.get_stats()["failures"] == 1

    async def test_timeout_raises_rate_table_unavailable(self, clock: FakeClock) -> None:
        fetch = CountingFetch(make_table(), delay=1.0)
        cache = RateTableCache(fetch, ttl=300, timeout=0.01, clock=clock)

        with pytest.raises(RateTableUnavailable) as exc_info:
            await cache.get_rates()

        assert "timed out" in exc_info.value.detail
        assert cache.table is None

    async def test_unexpected_error_is_wrapped(self, clock: FakeClock) -> None:
        fetch = CountingFetch(KeyError("rates"))
        cache = RateTableCache(fetch, ttl=300, clock=clock)

        with pytest.raises(RateTableUnavailable):
            await cache.get_rates()


class TestHttpRateTableFetcher:
    async def test_parses_rate_table(self) -> None:
        payload = make_table().model_dump(mode="json")

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v1/rates"
            return httpx.Response(200, json=payload)

        fetcher = HttpRateTableFetcher(
            url="http://rates.test/api/v1/rates", transport=httpx.MockTransport(handler)
        )
        table = await fetcher()

        assert table.base_currency == "IDR"
        assert table.rates[0].rate == Decimal("16000")
        assert table.snapshot().get_rate("USD", "IDR") == Decimal("16000")

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(503, json={"detail": "down"}),
            httpx.Response(200, text="<html>"),
            httpx.Response(200, json={"rates": "nope"}),
        ],
    )
    async def test_errors_raise_rate_table_unavailable(self, response: httpx.Response) -> None:
        fetcher = HttpRateTableFetcher(
            url="http://rates.test/api/v1/rates",
            transport=httpx.MockTransport(lambda request: response),
        )
        with pytest.raises(RateTableUnavailable):
            await fetcher()
