"""Exchange rate API routes: rate table, freshness, conversion and admin writes."""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fxrates.core.config import settings
from fxrates.core.deps import get_freshness_policy, get_provider
from fxrates.core.rate_limit import limiter
from fxrates.db.session import get_db, transactional
from fxrates.models.exchange_rate import ExchangeRate
from fxrates.repositories.exchange_rate import ExchangeRateRepository
from fxrates.schemas.exchange_rate import (
    ConvertRequest,
    ConvertResponse,
    CurrencyPair,
    ExchangeRateResponse,
    FreshnessResponse,
    PairFailureResponse,
    RateTableResponse,
    RateUpsertRequest,
    RefreshResponse,
    SeedResponse,
    StaleRateResponse,
)
from fxrates.services import currency_service, exchange_rate_service
from fxrates.services.conversion import convert
from fxrates.services.freshness import FreshnessPolicy
from fxrates.services.rate_providers import RateProvider

logger = logging.getLogger(__name__)

router = APIRouter()


def _rate_response(
    rate: ExchangeRate,
    policy: FreshnessPolicy,
    now: datetime | None = None,
) -> ExchangeRateResponse:
    return ExchangeRateResponse(
        from_currency=rate.from_currency,
        to_currency=rate.to_currency,
        rate=rate.rate,
        source=rate.source,
        last_updated=rate.last_updated,
        is_fresh=policy.is_rate_fresh(rate, now),
    )


def _pairs(pairs: list[tuple[str, str]]) -> list[CurrencyPair]:
    return [CurrencyPair(from_currency=f, to_currency=t) for f, t in pairs]


@router.get("/", response_model=RateTableResponse)
async def get_rate_table(
    db: Annotated[AsyncSession, Depends(get_db)],
    policy: Annotated[FreshnessPolicy, Depends(get_freshness_policy)],
) -> RateTableResponse:
    """Full rate table for client-side caching.

    Includes every active currency with its decimal places, every stored
    pair between active currencies with its own ``is_fresh`` flag, and the
    overall freshness of the table.

    Example:
        GET /api/v1/rates
    """
    table = await exchange_rate_service.load_rate_table(db, policy)
    now = table.report.checked_at
    return RateTableResponse(
        base_currency=table.base_currency,
        currencies=table.currencies,
        rates=[_rate_response(rate, policy, now) for rate in table.rates],
        is_fresh=table.report.is_fresh,
        max_age_seconds=policy.max_age.total_seconds(),
        generated_at=now,
    )


@router.get("/fresh", response_model=FreshnessResponse)
async def check_freshness(
    db: Annotated[AsyncSession, Depends(get_db)],
    policy: Annotated[FreshnessPolicy, Depends(get_freshness_policy)],
) -> FreshnessResponse:
    """Report whether stored rates are fresh, listing stale and missing pairs.

    Staleness is advisory; conversions keep working with stale rates.
    """
    report = await exchange_rate_service.check_freshness(db, policy)
    return FreshnessResponse(
        is_fresh=report.is_fresh,
        checked_at=report.checked_at,
        max_age_seconds=report.max_age.total_seconds(),
        total=report.total,
        stale_count=len(report.stale),
        stale=[
            StaleRateResponse(
                from_currency=stale.from_currency,
                to_currency=stale.to_currency,
                last_updated=stale.last_updated,
                age_seconds=stale.age.total_seconds(),
            )
            for stale in report.stale
        ],
        missing=_pairs(report.missing),
    )


@router.post("/convert", response_model=ConvertResponse)
@limiter.limit(settings.DEFAULT_RATE_LIMIT)
async def convert_amount(
    request: Request,
    conversion: ConvertRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    policy: Annotated[FreshnessPolicy, Depends(get_freshness_policy)],
) -> ConvertResponse:
    """Convert an amount between two active currencies.

    Raises:
        UnknownCurrency: 404 if either currency is missing or inactive
        RateUnavailable: 404 if no direct or base-composed rate exists

    Example:
        POST /api/v1/rates/convert
        {"amount": "10", "from_currency": "USD", "to_currency": "IDR"}
    """
    pair = (conversion.from_currency, conversion.to_currency)
    snapshot = await exchange_rate_service.load_rate_snapshot(db)
    converted = convert(snapshot, conversion.amount, *pair)
    legs = snapshot.resolve_legs(*pair)

    return ConvertResponse(
        original_amount=conversion.amount,
        converted_amount=converted,
        from_currency=pair[0],
        to_currency=pair[1],
        rate=snapshot.resolve_rate(*pair),
        via_base=bool(legs) and legs != [pair],
        is_fresh=all(policy.is_fresh(snapshot.last_updated[leg]) for leg in legs),
    )


@router.post("/refresh", response_model=RefreshResponse)
@limiter.limit(settings.REFRESH_RATE_LIMIT)
async def refresh_rates(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    provider: Annotated[RateProvider, Depends(get_provider)],
) -> RefreshResponse:
    """Fetch live rates from the configured provider and store both directions.

    Each currency is stored independently; failures are reported per pair
    and do not undo the currencies that succeeded.

    Raises:
        ProviderUnavailable: 503 if the provider call fails (nothing written)
    """
    result = await exchange_rate_service.refresh_exchange_rates(db, provider)
    return RefreshResponse(
        source=result.source,
        base_currency=result.base_currency,
        observed_at=result.observed_at,
        updated=_pairs(result.updated),
        failures=[
            PairFailureResponse(
                from_currency=failure.from_currency,
                to_currency=failure.to_currency,
                error_code=failure.error_code,
                detail=failure.detail,
                retryable=failure.retryable,
            )
            for failure in result.failures
        ],
        updated_count=len(result.updated),
        failed_count=len(result.failures),
    )


@router.post("/seed", response_model=SeedResponse)
@limiter.limit(settings.REFRESH_RATE_LIMIT)
async def seed_rates(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SeedResponse:
    """Create configured currencies and seed rates for pairs without a record."""
    result = await exchange_rate_service.seed(db)
    return SeedResponse(
        currencies_created=result.currencies_created,
        created=_pairs(result.created),
        skipped=_pairs(result.skipped),
    )


@router.put("/{from_currency}/{to_currency}", response_model=ExchangeRateResponse)
async def upsert_rate(
    from_currency: str,
    to_currency: str,
    rate_in: RateUpsertRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    policy: Annotated[FreshnessPolicy, Depends(get_freshness_policy)],
) -> ExchangeRateResponse:
    """Manually set the rate for one ordered pair.

    Only this direction is written; the inverse pair is left untouched.

    Raises:
        UnknownCurrency: 404 if either currency does not exist
        InvalidRate: 400 if the rate is not positive (prior value kept)
        InvalidRateSource: 400 if the source is unknown
    """
    from_code = (await currency_service.get_currency(db, from_currency)).code
    to_code = (await currency_service.get_currency(db, to_currency)).code

    async with transactional(db):
        rate = await ExchangeRateRepository(ExchangeRate, db).upsert_rate(
            from_code, to_code, rate_in.rate, rate_in.source
        )

    logger.info(f"Set {from_code}->{to_code} = {rate.rate} ({rate.source.value})")
    return _rate_response(rate, policy)
