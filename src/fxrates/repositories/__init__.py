"""Repository layer for database operations.

Repositories:
    - BaseRepository: Generic CRUD operations for any model
    - CurrencyRepository: Currency lookups, listing and base resolution
    - ExchangeRateRepository: Exact-pair rate lookups and atomic upserts

Usage:
    >>> from fxrates.repositories import CurrencyRepository, ExchangeRateRepository
    >>> from fxrates.models.currency import Currency
    >>> from fxrates.models.exchange_rate import ExchangeRate
    >>>
    >>> currencies = CurrencyRepository(Currency, db)
    >>> rates = ExchangeRateRepository(ExchangeRate, db)
    >>> base = await currencies.get_base()
    >>> usd_to_base = await rates.get_rate("USD", base.code)
"""

from fxrates.repositories.base import BaseRepository
from fxrates.repositories.currency import CurrencyRepository
from fxrates.repositories.exchange_rate import ExchangeRateRepository

__all__ = [
    "BaseRepository",
    "CurrencyRepository",
    "ExchangeRateRepository",
]
