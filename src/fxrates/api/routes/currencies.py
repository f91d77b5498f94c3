"""Currency API routes for managing supported currencies."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fxrates.db.session import get_db
from fxrates.models.currency import Currency
from fxrates.repositories.currency import CurrencyRepository
from fxrates.schemas.currency import CurrencyCreate, CurrencyResponse, CurrencyUpdate
from fxrates.services import currency_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=list[CurrencyResponse])
async def list_currencies(
    db: Annotated[AsyncSession, Depends(get_db)],
    active_only: bool = Query(True, description="Only return active currencies"),
) -> list[Currency]:
    """List currencies ordered by code.

    Example:
        GET /api/v1/currencies
        GET /api/v1/currencies?active_only=false
    """
    currencies = await CurrencyRepository(Currency, db).list_currencies(active_only=active_only)
    logger.info(f"Found {len(currencies)} currencies (active_only={active_only})")
    return currencies


@router.get("/{code}", response_model=CurrencyResponse)
async def get_currency(
    code: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Currency:
    """Get a currency by code, active or not.

    Raises:
        UnknownCurrency: 404 if no currency has this code

    Example:
        GET /api/v1/currencies/USD
    """
    return await currency_service.get_currency(db, code)


@router.post("/", response_model=CurrencyResponse, status_code=status.HTTP_201_CREATED)
async def create_currency(
    currency_data: CurrencyCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Currency:
    """Create a currency.

    Raises:
        ConflictError: 409 if the code exists or a second base is requested

    Example:
        POST /api/v1/currencies
        {
            "code": "GBP",
            "name": "British Pound",
            "symbol": "£",
            "decimal_places": 2
        }
    """
    return await currency_service.create_currency(db, currency_data)


@router.put("/{code}", response_model=CurrencyResponse)
async def update_currency(
    code: str,
    currency_data: CurrencyUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Currency:
    """Update a currency's metadata or toggle ``is_active``.

    Raises:
        UnknownCurrency: 404 if no currency has this code
        ConflictError: 409 when deactivating the base currency
    """
    return await currency_service.update_currency(db, code, currency_data)
