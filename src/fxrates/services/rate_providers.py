"""External exchange rate providers.

A provider answers one question: how many units of each target currency does
one unit of the base currency buy right now. Values are returned raw; the
refresh service validates them pair by pair so one bad quote never discards
the rest of the batch.

Providers:
- ExchangerateHostProvider: exchangerate.host ``/live`` endpoint (httpx)
- YFinanceProvider: Yahoo Finance FX tickers such as "IDRUSD=X" (yfinance)

Failure modes:
- Network errors, timeouts and ``success: false`` payloads raise
  ProviderUnavailable (retryable)
- Bodies that cannot be interpreted raise InvalidProviderPayload
- A currency absent from an otherwise good response is simply missing from
  ``ProviderQuote.rates``
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import Any

import httpx
import yfinance as yf  # type: ignore[import-untyped]

from fxrates.core.config import settings
from fxrates.core.constants import ProviderConstants
from fxrates.core.exceptions import InvalidProviderPayload, ProviderUnavailable
from fxrates.models.exchange_rate import RateSource

logger = logging.getLogger(__name__)


@dataclass
class ProviderQuote:
    """Rates returned by a provider for one base currency.

    Attributes:
        base: Base currency code the quotes are expressed against
        rates: Target code -> units of target per 1 unit of base (raw values)
        inverse_rates: Target code -> units of base per 1 unit of target, for
            providers that quote both directions; missing entries default to
            the reciprocal of the forward rate
        observed_at: Provider's own timestamp, or None to use the local clock
    """

    base: str
    rates: dict[str, Any]
    inverse_rates: dict[str, Any] = field(default_factory=dict)
    observed_at: datetime | None = None


class RateProvider(ABC):
    """Interface for an authoritative rate source."""

    source: RateSource

    @abstractmethod
    async def fetch_rates(self, base: str, currencies: Sequence[str]) -> ProviderQuote:
        """Fetch current rates for ``currencies`` against ``base``.

        Raises:
            ProviderUnavailable: On network failure, timeout or provider error
            InvalidProviderPayload: If the response cannot be interpreted
        """


class ExchangerateHostProvider(RateProvider):
    """exchangerate.host live quotes.

    Request: ``GET {url}?access_key=...&source=IDR&currencies=USD,EUR``
    Response quotes are keyed "{BASE}{CODE}" with a Unix ``timestamp``.
    """

    source = RateSource.EXCHANGERATE_HOST

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.url = url or settings.EXCHANGERATE_HOST_URL
        self.api_key = api_key if api_key is not None else settings.EXCHANGERATE_API_KEY
        self.timeout = timeout or settings.RATE_PROVIDER_TIMEOUT_SECONDS

    async def fetch_rates(self, base: str, currencies: Sequence[str]) -> ProviderQuote:
        base = base.upper()
        codes = [code.upper() for code in currencies]
        params = {"source": base, "currencies": ",".join(codes)}
        if self.api_key:
            params["access_key"] = self.api_key

        logger.info(f"Fetching {len(codes)} rates against {base} from exchangerate.host")
        try:
            # httpx timeouts apply per phase; wait_for bounds the whole call
            response = await asyncio.wait_for(self._get(params), timeout=self.timeout)
        except (TimeoutError, httpx.TimeoutException) as e:
            raise ProviderUnavailable(
                f"exchangerate.host timed out after {self.timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"exchangerate.host request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidProviderPayload("exchangerate.host returned a non-JSON body") from e

        return self._parse(payload, base, codes)

    async def _get(self, params: dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(self.url, params=params)
            response.raise_for_status()
            return response

    @staticmethod
    def _parse(payload: Any, base: str, codes: Sequence[str]) -> ProviderQuote:
        if not isinstance(payload, dict):
            raise InvalidProviderPayload("exchangerate.host returned an unexpected body")

        if not payload.get("success", False):
            error = payload.get("error") or {}
            info = error.get("info") if isinstance(error, dict) else error
            raise ProviderUnavailable(f"exchangerate.host reported an error: {info or 'unknown'}")

        quotes = payload.get("quotes")
        if not isinstance(quotes, dict):
            raise InvalidProviderPayload("exchangerate.host response has no quotes")

        rates = {code: quotes[f"{base}{code}"] for code in codes if f"{base}{code}" in quotes}

        observed_at = None
        timestamp = payload.get("timestamp")
        if isinstance(timestamp, int | float) and not isinstance(timestamp, bool):
            observed_at = datetime.fromtimestamp(timestamp, tz=UTC)

        return ProviderQuote(base=base, rates=rates, observed_at=observed_at)


class YFinanceProvider(RateProvider):
    """Yahoo Finance FX quotes via yfinance.

    yfinance is synchronous, so each fetch runs in the default executor and
    is bounded by ``asyncio.wait_for``. The most recent close within the
    lookback window is used for each ticker.
    """

    source = RateSource.YFINANCE

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout or settings.RATE_PROVIDER_TIMEOUT_SECONDS

    async def fetch_rates(self, base: str, currencies: Sequence[str]) -> ProviderQuote:
        base = base.upper()
        codes = [code.upper() for code in currencies]
        logger.info(f"Fetching {len(codes)} rates against {base} from yfinance")

        loop = asyncio.get_running_loop()
        try:
            rates = await asyncio.wait_for(
                loop.run_in_executor(None, self._fetch_closes, base, codes),
                timeout=self.timeout,
            )
        except TimeoutError as e:
            raise ProviderUnavailable(f"yfinance timed out after {self.timeout}s") from e

        if codes and not rates:
            raise ProviderUnavailable(f"yfinance returned no rates against {base}")
        return ProviderQuote(base=base, rates=rates)

    @staticmethod
    def _fetch_closes(base: str, codes: Sequence[str]) -> dict[str, float]:
        end_date = date.today() + timedelta(days=1)
        start_date = end_date - timedelta(days=ProviderConstants.YFINANCE_LOOKBACK_DAYS)
        rates: dict[str, float] = {}

        for code in codes:
            ticker_symbol = ProviderConstants.YFINANCE_TICKER_FORMAT.format(base=base, target=code)
            try:
                hist = yf.Ticker(ticker_symbol).history(start=start_date, end=end_date)
            except Exception as e:
                # One bad ticker must not sink the batch; the pair is reported missing
                logger.warning(f"Failed to fetch rate for {ticker_symbol}: {e}")
                continue

            if hist.empty:
                logger.warning(f"No data returned for {ticker_symbol}")
                continue
            rates[code] = float(hist["Close"].iloc[-1])

        return rates


_PROVIDERS: dict[str, type[RateProvider]] = {
    RateSource.EXCHANGERATE_HOST.value: ExchangerateHostProvider,
    RateSource.YFINANCE.value: YFinanceProvider,
}


def get_rate_provider(name: str | None = None) -> RateProvider:
    """Build the provider named by ``name`` or the RATE_PROVIDER setting.

    Raises:
        ValueError: If the provider name is not recognised
    """
    name = name or settings.RATE_PROVIDER
    try:
        return _PROVIDERS[name]()
    except KeyError:
        allowed = ", ".join(sorted(_PROVIDERS))
        raise ValueError(f"Unknown rate provider {name!r} (allowed: {allowed})") from None
