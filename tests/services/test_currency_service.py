"""Tests for currency administration and the single-base invariant."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from fxrates.core.exceptions import ConflictError, UnknownCurrency
from fxrates.models.currency import Currency
from fxrates.schemas.currency import CurrencyCreate, CurrencyUpdate
from fxrates.services.currency_service import create_currency, get_currency, update_currency

pytestmark = pytest.mark.integration


async def test_create_currency(test_db: AsyncSession, currencies: dict[str, Currency]) -> None:
    currency = await create_currency(
        test_db, CurrencyCreate(code="sgd", name="Singapore Dollar", symbol="S$")
    )
    assert currency.code == "SGD"
    assert currency.decimal_places == 2
    assert currency.is_base is False
    assert currency.is_active is True


async def test_create_duplicate_conflicts(
    test_db: AsyncSession, currencies: dict[str, Currency]
) -> None:
    with pytest.raises(ConflictError):
        await create_currency(test_db, CurrencyCreate(code="USD", name="Dup", symbol="$"))


async def test_create_second_base_conflicts(
    test_db: AsyncSession, currencies: dict[str, Currency]
) -> None:
    with pytest.raises(ConflictError) as exc_info:
        await create_currency(
            test_db, CurrencyCreate(code="SGD", name="Singapore Dollar", symbol="S$", is_base=True)
        )
    assert "IDR" in exc_info.value.detail


async def test_create_first_base(test_db: AsyncSession) -> None:
    currency = await create_currency(
        test_db, CurrencyCreate(code="USD", name="US Dollar", symbol="$", is_base=True)
    )
    assert currency.is_base is True


async def test_create_inactive_base_conflicts(test_db: AsyncSession) -> None:
    with pytest.raises(ConflictError):
        await create_currency(
            test_db,
            CurrencyCreate(code="USD", name="US Dollar", symbol="$", is_base=True, is_active=False),
        )


async def test_update_toggles_active(
    test_db: AsyncSession, currencies: dict[str, Currency]
) -> None:
    currency = await update_currency(test_db, "myr", CurrencyUpdate(is_active=False))
    assert currency.is_active is False

    currency = await update_currency(test_db, "MYR", CurrencyUpdate(is_active=True, name="Ringgit"))
    assert currency.is_active is True
    assert currency.name == "Ringgit"


async def test_cannot_deactivate_base(
    test_db: AsyncSession, currencies: dict[str, Currency]
) -> None:
    with pytest.raises(ConflictError):
        await update_currency(test_db, "IDR", CurrencyUpdate(is_active=False))

    assert (await get_currency(test_db, "IDR")).is_active is True


async def test_get_unknown_currency(test_db: AsyncSession) -> None:
    with pytest.raises(UnknownCurrency):
        await get_currency(test_db, "XYZ")
