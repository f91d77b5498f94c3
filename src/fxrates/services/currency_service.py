"""Currency administration with the single-base invariant.

Exactly one active currency is the base. Creating a second base, removing
the flag from the base, or deactivating the base are rejected as conflicts;
changing which currency is the base is not supported through the API.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from fxrates.core.exceptions import ConflictError, UnknownCurrency
from fxrates.db.session import transactional
from fxrates.models.currency import Currency
from fxrates.repositories.currency import CurrencyRepository
from fxrates.schemas.currency import CurrencyCreate, CurrencyUpdate

logger = logging.getLogger(__name__)


async def get_currency(db: AsyncSession, code: str) -> Currency:
    """Get a currency by code, active or not.

    Raises:
        UnknownCurrency: If no currency has this code
    """
    currency = await CurrencyRepository(Currency, db).get_by_code(code)
    if currency is None:
        raise UnknownCurrency(f"Currency {code.upper()} not found")
    return currency


async def create_currency(db: AsyncSession, currency_in: CurrencyCreate) -> Currency:
    """Create a currency.

    Args:
        db: Database session
        currency_in: Currency definition

    Returns:
        The created currency (committed)

    Raises:
        ConflictError: If the code exists, or a base is requested while one exists
    """
    repo = CurrencyRepository(Currency, db)
    if await repo.exists(currency_in.code):
        raise ConflictError(f"Currency {currency_in.code} already exists")

    if currency_in.is_base:
        if not currency_in.is_active:
            raise ConflictError("The base currency must be active")
        base = await repo.get_base()
        if base is not None:
            raise ConflictError(f"{base.code} is already the base currency")

    async with transactional(db):
        currency = await repo.create(obj_in=currency_in)

    logger.info(f"Created currency {currency.code} (base={currency.is_base})")
    return currency


async def update_currency(
    db: AsyncSession,
    code: str,
    currency_in: CurrencyUpdate,
) -> Currency:
    """Update a currency's metadata or active flag.

    Raises:
        UnknownCurrency: If no currency has this code
        ConflictError: If the update would deactivate the base currency
    """
    repo = CurrencyRepository(Currency, db)
    currency = await get_currency(db, code)

    if currency.is_base and currency_in.is_active is False:
        raise ConflictError(f"Cannot deactivate the base currency {currency.code}")

    async with transactional(db):
        currency = await repo.update(db_obj=currency, obj_in=currency_in)

    logger.info(f"Updated currency {currency.code}")
    return currency
