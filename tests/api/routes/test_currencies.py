"""Tests for currency API endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fxrates.models.currency import Currency

CURRENCIES_URL = "/api/v1/currencies"


@pytest.mark.integration
async def test_list_currencies(client: AsyncClient, currencies: dict[str, Currency]) -> None:
    """Test listing active currencies ordered by code."""
    response = await client.get(f"{CURRENCIES_URL}/")
    assert response.status_code == 200

    data = response.json()
    assert [c["code"] for c in data] == ["EUR", "IDR", "MYR", "USD"]

    idr = data[1]
    assert idr["is_base"] is True
    assert idr["decimal_places"] == 0
    assert idr["symbol"] == "Rp"


@pytest.mark.integration
async def test_list_currencies_active_only(
    client: AsyncClient, test_db: AsyncSession, currencies: dict[str, Currency]
) -> None:
    """Test that inactive currencies are only listed on request."""
    test_db.add(Currency(code="XXX", name="Test Inactive", symbol="X", is_active=False))
    await test_db.commit()

    active = (await client.get(f"{CURRENCIES_URL}/")).json()
    assert "XXX" not in {c["code"] for c in active}

    everything = (await client.get(f"{CURRENCIES_URL}/", params={"active_only": False})).json()
    assert "XXX" in {c["code"] for c in everything}


@pytest.mark.integration
async def test_get_currency(client: AsyncClient, currencies: dict[str, Currency]) -> None:
    response = await client.get(f"{CURRENCIES_URL}/usd")
    assert response.status_code == 200
    assert response.json()["code"] == "USD"


@pytest.mark.integration
async def test_get_currency_not_found(
    client: AsyncClient, currencies: dict[str, Currency]
) -> None:
    response = await client.get(f"{CURRENCIES_URL}/GBP")
    assert response.status_code == 404

    data = response.json()
    assert data["error_code"] == "UNKNOWN_CURRENCY"
    assert "GBP" in data["detail"]


@pytest.mark.integration
async def test_create_currency(
    client: AsyncClient, test_db: AsyncSession, currencies: dict[str, Currency]
) -> None:
    """Test creating a currency persists it with defaults."""
    response = await client.post(
        f"{CURRENCIES_URL}/",
        json={"code": "gbp", "name": "British Pound", "symbol": "£"},
    )
    assert response.status_code == 201

    data = response.json()
    assert data["code"] == "GBP"
    assert data["decimal_places"] == 2
    assert data["is_base"] is False
    assert data["is_active"] is True

    result = await test_db.execute(select(Currency).where(Currency.code == "GBP"))
    assert result.scalar_one().name == "British Pound"


@pytest.mark.integration
async def test_create_duplicate_currency(
    client: AsyncClient, currencies: dict[str, Currency]
) -> None:
    response = await client.post(
        f"{CURRENCIES_URL}/",
        json={"code": "USD", "name": "Another Dollar", "symbol": "$"},
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "CONFLICT"


@pytest.mark.integration
async def test_create_second_base_rejected(
    client: AsyncClient, currencies: dict[str, Currency]
) -> None:
    response = await client.post(
        f"{CURRENCIES_URL}/",
        json={"code": "GBP", "name": "British Pound", "symbol": "£", "is_base": True},
    )
    assert response.status_code == 409
    assert "IDR" in response.json()["detail"]


@pytest.mark.integration
@pytest.mark.parametrize(
    "payload",
    [
        {"code": "US", "name": "Too Short", "symbol": "$"},
        {"code": "U5D", "name": "Digit", "symbol": "$"},
        {"code": "GBP", "name": "British Pound", "symbol": "£", "decimal_places": 9},
        {"code": "GBP", "name": "", "symbol": "£"},
    ],
)
async def test_create_currency_validation(
    client: AsyncClient, currencies: dict[str, Currency], payload: dict
) -> None:
    response = await client.post(f"{CURRENCIES_URL}/", json=payload)
    assert response.status_code == 422


@pytest.mark.integration
async def test_update_currency(client: AsyncClient, currencies: dict[str, Currency]) -> None:
    """Test partial updates leave other fields untouched."""
    response = await client.put(f"{CURRENCIES_URL}/MYR", json={"symbol": "RM.", "is_active": False})
    assert response.status_code == 200

    data = response.json()
    assert data["symbol"] == "RM."
    assert data["is_active"] is False
    assert data["name"] == "Malaysian Ringgit"

    active = (await client.get(f"{CURRENCIES_URL}/")).json()
    assert "MYR" not in {c["code"] for c in active}


@pytest.mark.integration
async def test_deactivate_base_rejected(
    client: AsyncClient, currencies: dict[str, Currency]
) -> None:
    response = await client.put(f"{CURRENCIES_URL}/IDR", json={"is_active": False})
    assert response.status_code == 409

    base = (await client.get(f"{CURRENCIES_URL}/IDR")).json()
    assert base["is_active"] is True


@pytest.mark.integration
async def test_update_unknown_currency(
    client: AsyncClient, currencies: dict[str, Currency]
) -> None:
    response = await client.put(f"{CURRENCIES_URL}/GBP", json={"name": "Pound"})
    assert response.status_code == 404
