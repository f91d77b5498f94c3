"""Client-side cache of the full rate table.

Pricing code converts many amounts per page; fetching the rate table for
each one would hammer the read API. ``RateTableCache`` keeps the last table
for a short TTL and collapses concurrent misses into a single upstream fetch.

Behaviour:
- Within the TTL, ``get_rates()`` returns the cached table without I/O
- On a miss, the first caller starts the fetch and every concurrent caller
  awaits that same fetch
- A failed or timed-out fetch raises RateTableUnavailable and keeps the
  last good table for the next call
- ``invalidate()`` forces the next call to fetch; ``reset()`` drops all state
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from pydantic import ValidationError

from fxrates.core.config import settings
from fxrates.core.exceptions import RateTableUnavailable
from fxrates.schemas.exchange_rate import RateTableResponse

logger = logging.getLogger(__name__)

RateTableFetch = Callable[[], Awaitable[RateTableResponse]]


class HttpRateTableFetcher:
    """Fetch the rate table from the read API with httpx.

    Args:
        url: Rate table endpoint (default: settings.RATES_API_URL)
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport, e.g. ``httpx.ASGITransport(app=app)``
    """

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url or settings.RATES_API_URL
        self.timeout = timeout or settings.RATE_CACHE_FETCH_TIMEOUT_SECONDS
        self.transport = transport

    async def __call__(self) -> RateTableResponse:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise RateTableUnavailable(f"Failed to fetch rate table from {self.url}: {e}") from e

        try:
            return RateTableResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RateTableUnavailable(f"Rate table from {self.url} could not be parsed") from e


class RateTableCache:
    """Short-TTL, single-flight cache of the rate table.

    Args:
        fetch: Coroutine function returning a fresh RateTableResponse
        ttl: Seconds a fetched table is served without refetching
        timeout: Upper bound in seconds for one upstream fetch
        clock: Monotonic seconds source; injectable for tests

    Example:
        >>> cache = RateTableCache()
        >>> table = await cache.get_rates()
        >>> convert(table.snapshot(), Decimal("10"), "USD", "IDR")
    """

    def __init__(
        self,
        fetch: RateTableFetch | None = None,
        *,
        ttl: float | None = None,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch or HttpRateTableFetcher()
        self.ttl = settings.RATE_CACHE_TTL_SECONDS if ttl is None else ttl
        self.timeout = settings.RATE_CACHE_FETCH_TIMEOUT_SECONDS if timeout is None else timeout
        self._clock = clock
        self.reset()

    def reset(self) -> None:
        """Drop the cached table, the in-flight fetch and the counters.

        A fetch already running completes for its awaiting callers but its
        result is not stored.
        """
        self._table: RateTableResponse | None = None
        self._cached_at: float | None = None
        self._stale = False
        self._in_flight: asyncio.Task[RateTableResponse] | None = None
        self._generation = getattr(self, "_generation", 0) + 1
        self._invalidations = 0
        self._stats = {"hits": 0, "misses": 0, "fetches": 0, "failures": 0}

    def invalidate(self) -> None:
        """Make the next ``get_rates()`` fetch regardless of the TTL.

        A fetch already running finishes for its callers but counts as
        outdated: it does not clear the invalidation, and later callers start
        a new fetch instead of joining it.
        """
        self._stale = True
        self._invalidations += 1
        self._in_flight = None

    @property
    def table(self) -> RateTableResponse | None:
        """Last successfully fetched table, if any."""
        return self._table

    def _is_valid(self) -> bool:
        if self._table is None or self._cached_at is None or self._stale:
            return False
        return self._clock() - self._cached_at < self.ttl

    async def get_rates(self) -> RateTableResponse:
        """Return the cached table or fetch a new one.

        Raises:
            RateTableUnavailable: If the fetch fails or times out
        """
        if self._is_valid():
            self._stats["hits"] += 1
            return self._table  # type: ignore[return-value]

        self._stats["misses"] += 1
        if self._in_flight is None:
            self._in_flight = asyncio.create_task(self._refresh(self._generation, self._invalidations))
            self._in_flight.add_done_callback(self._fetch_done)

        # Shielded so a cancelled caller does not cancel the fetch others await
        return await asyncio.shield(self._in_flight)

    def _fetch_done(self, task: asyncio.Task[RateTableResponse]) -> None:
        if self._in_flight is task:
            self._in_flight = None
        if not task.cancelled():
            # Marks the exception retrieved when every caller was cancelled
            task.exception()

    async def _refresh(self, generation: int, invalidations: int) -> RateTableResponse:
        self._stats["fetches"] += 1
        try:
            table = await asyncio.wait_for(self._fetch(), timeout=self.timeout)
        except TimeoutError as e:
            self._stats["failures"] += 1
            logger.warning(f"Rate table fetch timed out after {self.timeout}s")
            raise RateTableUnavailable(f"Rate table fetch timed out after {self.timeout}s") from e
        except RateTableUnavailable as e:
            self._stats["failures"] += 1
            logger.warning(f"Rate table fetch failed: {e.detail}")
            raise
        except Exception as e:
            self._stats["failures"] += 1
            logger.error(f"Unexpected error fetching rate table: {e}", exc_info=True)
            raise RateTableUnavailable(f"Rate table fetch failed: {e}") from e

        if generation != self._generation:
            return table
        if invalidations == self._invalidations:
            self._table = table
            self._cached_at = self._clock()
            self._stale = False
            logger.debug(f"Cached rate table with {len(table.rates)} rates")
        elif self._table is None:
            # Started before invalidate(); kept only as the last-good fallback
            self._table = table
        return table

    def get_stats(self) -> dict[str, Any]:
        """Cache statistics: hit/miss counters plus table age."""
        age = None if self._cached_at is None else self._clock() - self._cached_at
        return {
            **self._stats,
            "cached": self._table is not None,
            "age_seconds": age,
            "ttl_seconds": self.ttl,
            "fetch_in_flight": self._in_flight is not None,
        }
