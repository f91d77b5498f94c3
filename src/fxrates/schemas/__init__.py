"""Schemas package."""

from fxrates.schemas.currency import (
    CurrencyBase,
    CurrencyCreate,
    CurrencyResponse,
    CurrencyUpdate,
)
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

__all__ = [
    # Currency schemas
    "CurrencyBase",
    "CurrencyCreate",
    "CurrencyResponse",
    "CurrencyUpdate",
    # Rate table schemas
    "CurrencyPair",
    "ExchangeRateResponse",
    "RateTableResponse",
    "StaleRateResponse",
    "FreshnessResponse",
    # Conversion schemas
    "ConvertRequest",
    "ConvertResponse",
    # Admin schemas
    "RateUpsertRequest",
    "PairFailureResponse",
    "RefreshResponse",
    "SeedResponse",
]
