"""Exchange rate schemas for request/response validation.

Decimal fields serialize as JSON strings so no precision is lost between the
server and clients rebuilding a ``RateSnapshot`` from the rate table.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from fxrates.core.constants import CurrencyConstants
from fxrates.models.exchange_rate import RateSource
from fxrates.schemas.currency import CurrencyResponse
from fxrates.services.conversion import RateSnapshot


class CurrencyPair(BaseModel):
    """An ordered currency pair."""

    from_currency: str
    to_currency: str


class ExchangeRateResponse(BaseModel):
    """Schema for a stored rate with its freshness."""

    from_currency: str
    to_currency: str
    rate: Decimal
    source: RateSource
    last_updated: datetime
    is_fresh: bool

    model_config = {"from_attributes": True}


class RateTableResponse(BaseModel):
    """Schema for the full rate table served to clients."""

    base_currency: str | None
    currencies: list[CurrencyResponse]
    rates: list[ExchangeRateResponse]
    is_fresh: bool
    max_age_seconds: float
    generated_at: datetime

    def snapshot(self) -> RateSnapshot:
        """Build a conversion snapshot from this table."""
        return RateSnapshot.build(self.currencies, self.rates)


class StaleRateResponse(CurrencyPair):
    """Schema for a stale rate."""

    last_updated: datetime
    age_seconds: float


class FreshnessResponse(BaseModel):
    """Schema for the freshness check."""

    is_fresh: bool
    checked_at: datetime
    max_age_seconds: float
    total: int
    stale_count: int
    stale: list[StaleRateResponse]
    missing: list[CurrencyPair]


class ConvertRequest(BaseModel):
    """Schema for a conversion request."""

    amount: Decimal = Field(..., allow_inf_nan=False)
    from_currency: str = Field(..., pattern=CurrencyConstants.CODE_PATTERN)
    to_currency: str = Field(..., pattern=CurrencyConstants.CODE_PATTERN)

    @field_validator("from_currency", "to_currency", mode="before")
    @classmethod
    def uppercase_codes(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


class ConvertResponse(BaseModel):
    """Schema for a conversion result."""

    original_amount: Decimal
    converted_amount: Decimal
    from_currency: str
    to_currency: str
    rate: Decimal
    via_base: bool = False
    is_fresh: bool


class RateUpsertRequest(BaseModel):
    """Schema for a manual rate correction.

    ``rate`` is checked by the rate store, so a zero or negative value is
    answered with INVALID_RATE rather than a generic validation error.
    """

    rate: Decimal
    source: str = RateSource.SEED.value


class PairFailureResponse(CurrencyPair):
    """Schema for a pair a refresh could not write."""

    error_code: str
    detail: str
    retryable: bool


class RefreshResponse(BaseModel):
    """Schema for a live refresh report."""

    source: RateSource
    base_currency: str
    observed_at: datetime
    updated: list[CurrencyPair]
    failures: list[PairFailureResponse]
    updated_count: int
    failed_count: int


class SeedResponse(BaseModel):
    """Schema for a seed run."""

    currencies_created: list[str]
    created: list[CurrencyPair]
    skipped: list[CurrencyPair]
