"""Client-side access to exchange rates for pricing code."""

import logging
from decimal import Decimal
from typing import Any

from fxrates.core.cache import RateTableCache
from fxrates.schemas.exchange_rate import RateTableResponse
from fxrates.services.conversion import convert

logger = logging.getLogger(__name__)


class RatesClient:
    """Converts amounts using the cached rate table.

    Conversion itself is synchronous; only obtaining the table may hit the
    network, and concurrent callers share one fetch.

    Example:
        >>> client = RatesClient()
        >>> await client.convert(Decimal("25"), "USD", "IDR")
        Decimal('415115')
    """

    def __init__(self, cache: RateTableCache | None = None) -> None:
        self.cache = cache or RateTableCache()

    async def get_rates(self) -> RateTableResponse:
        return await self.cache.get_rates()

    async def convert(self, amount: Any, from_currency: str, to_currency: str) -> Decimal | Any:
        """Convert an amount with the cached table.

        Same-currency conversions return ``amount`` without touching the cache.

        Raises:
            RateTableUnavailable: If the table cannot be fetched
            UnknownCurrency: If a currency is missing or inactive
            RateUnavailable: If no direct or base-composed rate exists
        """
        if from_currency.upper() == to_currency.upper():
            return amount
        table = await self.get_rates()
        return convert(table.snapshot(), amount, from_currency, to_currency)

    async def is_fresh(self) -> bool:
        """Whether the server reported the cached table as fresh."""
        table = await self.get_rates()
        if not table.is_fresh:
            logger.warning("Exchange rates are stale; conversions use the last stored values")
        return table.is_fresh

    def clear_cache(self) -> None:
        self.cache.invalidate()
