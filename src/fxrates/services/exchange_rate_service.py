"""Exchange rate service: seeding, live refresh and read models.

Seed path:
- Creates configured currencies that do not exist yet
- Writes ``code->base`` and ``base->code`` seed rates only where a pair has
  no record, so a live or previously seeded value is never overwritten

Live refresh path:
- Asks the configured provider for every active non-base currency against
  the base currency in one call
- Upserts both directions per currency, each currency in its own
  transaction, so one bad value never rolls back the others
- Provider-level failures raise before anything is written

Data flow:
    RateProvider -> refresh_exchange_rates -> exchange_rates table
    exchange_rates table -> load_rate_snapshot -> conversion.convert
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fxrates.core.config import settings
from fxrates.core.constants import RateConstants
from fxrates.core.exceptions import AppException, UnknownCurrency
from fxrates.db.base import utcnow
from fxrates.db.session import transactional
from fxrates.models.currency import Currency
from fxrates.models.exchange_rate import ExchangeRate, RateSource
from fxrates.repositories.currency import CurrencyRepository
from fxrates.repositories.exchange_rate import ExchangeRateRepository, parse_rate
from fxrates.services.conversion import RateSnapshot
from fxrates.services.freshness import FreshnessPolicy, FreshnessReport
from fxrates.services.rate_providers import RateProvider, get_rate_provider

logger = logging.getLogger(__name__)

_RATE_QUANTUM = Decimal(1).scaleb(-RateConstants.RATE_SCALE)


@dataclass
class SeedResult:
    """Outcome of seeding: which pairs were written and which already existed."""

    currencies_created: list[str] = field(default_factory=list)
    created: list[tuple[str, str]] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class PairFailure:
    """A pair the refresh could not write."""

    from_currency: str
    to_currency: str
    error_code: str
    detail: str
    retryable: bool


@dataclass
class RefreshResult:
    """Per-pair report of one live refresh."""

    source: RateSource
    base_currency: str
    observed_at: datetime
    updated: list[tuple[str, str]] = field(default_factory=list)
    failures: list[PairFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures


@dataclass
class RateTable:
    """Everything the read API exposes about the stored rates."""

    base_currency: str | None
    currencies: list[Currency]
    rates: list[ExchangeRate]
    report: FreshnessReport


def inverse_rate(rate: Any) -> Decimal:
    """Reciprocal of a rate at storage precision.

    Raises:
        InvalidRate: If the rate is invalid or its reciprocal rounds to zero
    """
    return parse_rate((Decimal(1) / parse_rate(rate)).quantize(_RATE_QUANTUM))


def _repositories(db: AsyncSession) -> tuple[CurrencyRepository, ExchangeRateRepository]:
    return CurrencyRepository(Currency, db), ExchangeRateRepository(ExchangeRate, db)


async def _require_base(currencies: CurrencyRepository) -> str:
    base = await currencies.get_base()
    if base is None:
        raise UnknownCurrency("No active base currency is configured", error_code="NO_BASE_CURRENCY")
    return base.code


async def seed_currencies(
    db: AsyncSession,
    currencies: Iterable[Mapping[str, Any]] | None = None,
) -> list[str]:
    """Create configured currencies that do not exist yet.

    Existing rows are left untouched. A seed entry flagged as base is created
    as a regular currency when another base already exists.

    Args:
        db: Database session
        currencies: Currency definitions (default: settings.SEED_CURRENCIES)

    Returns:
        Codes of the currencies that were created
    """
    repo = CurrencyRepository(Currency, db)
    created: list[str] = []

    for entry in settings.SEED_CURRENCIES if currencies is None else currencies:
        data = dict(entry)
        data["code"] = data["code"].upper()
        if await repo.exists(data["code"]):
            logger.debug(f"Currency {data['code']} already exists, skipping")
            continue

        if data.get("is_base"):
            base = await repo.get_base()
            if base is not None:
                logger.warning(
                    f"Seed marks {data['code']} as base but {base.code} already is; "
                    f"creating {data['code']} as a regular currency"
                )
                data["is_base"] = False

        async with transactional(db):
            await repo.create(obj_in=data)
        created.append(data["code"])

    logger.info(f"Seeded {len(created)} currencies: {', '.join(created) or 'none'}")
    return created


async def seed_exchange_rates(
    db: AsyncSession,
    rates_to_base: Mapping[str, Any] | None = None,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> SeedResult:
    """Write bootstrap rates for pairs that have no record yet.

    For each ``(code, rate_to_base)`` both ``code->base = rate_to_base`` and
    ``base->code = 1 / rate_to_base`` are inserted with ``source = seed``,
    each only when absent. Running it twice changes nothing.

    Args:
        db: Database session
        rates_to_base: Units of base per 1 unit of code
            (default: settings.SEED_RATES_TO_BASE)
        clock: Timestamp source for ``last_updated``

    Returns:
        SeedResult with the pairs created and skipped

    Raises:
        UnknownCurrency: If no active base currency exists
        InvalidRate: If a configured rate is not a positive number
    """
    currencies, rates = _repositories(db)
    base_code = await _require_base(currencies)
    active = {c.code for c in await currencies.list_currencies(active_only=True)}
    result = SeedResult()
    now = clock()

    if rates_to_base is None:
        rates_to_base = settings.SEED_RATES_TO_BASE
    for raw_code, raw_rate in rates_to_base.items():
        code = raw_code.upper()
        if code == base_code or code not in active:
            logger.warning(f"Skipping seed rate for {code}: base, unknown or inactive currency")
            continue

        forward = parse_rate(raw_rate)
        pairs = ((code, base_code, forward), (base_code, code, inverse_rate(forward)))
        async with transactional(db):
            for from_code, to_code, value in pairs:
                if await rates.insert_rate_if_absent(
                    from_code, to_code, value, RateSource.SEED, observed_at=now
                ):
                    result.created.append((from_code, to_code))
                else:
                    logger.info(f"Rate {from_code}->{to_code} already exists, not seeding")
                    result.skipped.append((from_code, to_code))

    logger.info(
        f"Seeded exchange rates: {len(result.created)} created, {len(result.skipped)} skipped"
    )
    return result


async def seed(db: AsyncSession) -> SeedResult:
    """Seed configured currencies, then their bootstrap rates."""
    created_codes = await seed_currencies(db)
    result = await seed_exchange_rates(db)
    result.currencies_created = created_codes
    return result


async def refresh_exchange_rates(
    db: AsyncSession,
    provider: RateProvider | None = None,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> RefreshResult:
    """Fetch live rates and upsert both directions for every active currency.

    Args:
        db: Database session
        provider: Rate source (default: the one named by RATE_PROVIDER)
        clock: Fallback ``observed_at`` when the provider reports no timestamp

    Returns:
        RefreshResult listing updated pairs and per-pair failures

    Raises:
        UnknownCurrency: If no active base currency exists
        ProviderUnavailable: If the provider call fails; nothing is written
        InvalidProviderPayload: If the provider response cannot be read

    Example:
        >>> result = await refresh_exchange_rates(db)
        >>> for failure in result.failures:
        ...     print(failure.from_currency, failure.to_currency, failure.error_code)
    """
    provider = provider or get_rate_provider()
    currencies, rates = _repositories(db)
    base_code = await _require_base(currencies)
    # Plain codes: a rollback below expires ORM instances
    targets = [
        c.code for c in await currencies.list_currencies(active_only=True) if c.code != base_code
    ]

    quote = await provider.fetch_rates(base_code, targets)
    observed_at = quote.observed_at or clock()
    result = RefreshResult(
        source=provider.source,
        base_currency=base_code,
        observed_at=observed_at,
    )

    for code in targets:
        pairs = [(base_code, code), (code, base_code)]
        if code not in quote.rates:
            logger.warning(f"{provider.source.value} returned no rate for {base_code}->{code}")
            result.failures.extend(
                PairFailure(
                    from_currency=from_code,
                    to_currency=to_code,
                    error_code="MISSING_FROM_PROVIDER",
                    detail=f"{provider.source.value} returned no rate for {code}",
                    retryable=False,
                )
                for from_code, to_code in pairs
            )
            continue

        try:
            async with transactional(db):
                forward = parse_rate(quote.rates[code])
                inverse = quote.inverse_rates.get(code)
                inverse = parse_rate(inverse) if inverse is not None else inverse_rate(forward)
                await rates.upsert_rate(base_code, code, forward, provider.source, observed_at)
                await rates.upsert_rate(code, base_code, inverse, provider.source, observed_at)
        except AppException as e:
            logger.warning(f"Rejected rate for {base_code}<->{code}: {e.detail}")
            result.failures.extend(
                PairFailure(from_code, to_code, e.error_code or "ERROR", e.detail, e.retryable)
                for from_code, to_code in pairs
            )
            continue
        except SQLAlchemyError as e:
            logger.error(f"Failed to store rate for {base_code}<->{code}: {e}", exc_info=True)
            result.failures.extend(
                PairFailure(from_code, to_code, "STORAGE_ERROR", str(e), True)
                for from_code, to_code in pairs
            )
            continue

        result.updated.extend(pairs)

    logger.info(
        f"Refreshed rates from {provider.source.value}: "
        f"{len(result.updated)} pairs updated, {len(result.failures)} failed"
    )
    return result


async def load_rate_snapshot(db: AsyncSession) -> RateSnapshot:
    """Read active currencies and all rates into an immutable snapshot."""
    currencies, rates = _repositories(db)
    return RateSnapshot.build(
        await currencies.list_currencies(active_only=True),
        await rates.list_rates(),
    )


def required_pairs(base_code: str | None, codes: Iterable[str]) -> list[tuple[str, str]]:
    """Both directions between the base and every other code."""
    if base_code is None:
        return []
    pairs: list[tuple[str, str]] = []
    for code in codes:
        if code != base_code:
            pairs.extend([(base_code, code), (code, base_code)])
    return pairs


async def load_rate_table(
    db: AsyncSession,
    policy: FreshnessPolicy | None = None,
) -> RateTable:
    """Load the full rate table with its freshness report.

    Only rates between active currencies are included.
    """
    policy = policy or FreshnessPolicy.from_settings()
    currency_repo, rate_repo = _repositories(db)
    active = await currency_repo.list_currencies(active_only=True)
    codes = {c.code for c in active}
    base_code = next((c.code for c in active if c.is_base), None)
    table_rates = [
        r for r in await rate_repo.list_rates() if r.from_currency in codes and r.to_currency in codes
    ]
    report = policy.evaluate(table_rates, required_pairs=required_pairs(base_code, codes))
    return RateTable(base_currency=base_code, currencies=active, rates=table_rates, report=report)


async def check_freshness(
    db: AsyncSession,
    policy: FreshnessPolicy | None = None,
) -> FreshnessReport:
    """Evaluate stored rates between active currencies against the policy."""
    table = await load_rate_table(db, policy)
    return table.report


async def refresh_if_stale(
    db: AsyncSession,
    provider: RateProvider | None = None,
    policy: FreshnessPolicy | None = None,
) -> RefreshResult | None:
    """Run a live refresh only when the stored rates are not fresh.

    Returns:
        RefreshResult if a refresh ran, None if the rates were fresh
    """
    report = await check_freshness(db, policy)
    if report.is_fresh:
        logger.info(f"Stored rates are fresh ({report.total} pairs), skipping refresh")
        return None

    logger.info(
        f"Stored rates are stale ({len(report.stale)} stale, {len(report.missing)} missing), "
        f"refreshing"
    )
    return await refresh_exchange_rates(db, provider)


__all__ = [
    "PairFailure",
    "RateTable",
    "RefreshResult",
    "SeedResult",
    "check_freshness",
    "inverse_rate",
    "load_rate_snapshot",
    "load_rate_table",
    "refresh_exchange_rates",
    "refresh_if_stale",
    "required_pairs",
    "seed",
    "seed_currencies",
    "seed_exchange_rates",
]
