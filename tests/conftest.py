"""Pytest fixtures for testing."""

from collections.abc import AsyncGenerator, Sequence
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fxrates.core.deps import get_freshness_policy, get_provider
from fxrates.core.exceptions import ProviderUnavailable
from fxrates.core.rate_limit import limiter
from fxrates.db.base import Base
from fxrates.db.session import get_db
from fxrates.models.currency import Currency
from fxrates.models.exchange_rate import ExchangeRate, RateSource
from fxrates.repositories.exchange_rate import ExchangeRateRepository
from fxrates.services.freshness import FreshnessPolicy
from fxrates.services.rate_providers import ProviderQuote, RateProvider
from main import app

# Test database URL (SQLite in-memory for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed "now" for every freshness decision in the tests
NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
MAX_AGE = timedelta(hours=8)

# 1 unit of the code in IDR
RATES_TO_IDR = {
    "USD": Decimal("16000"),
    "EUR": Decimal("17500"),
    "MYR": Decimal("3500"),
}


class FakeProvider(RateProvider):
    """In-memory provider returning preset rates or raising a preset error."""

    source = RateSource.EXCHANGERATE_HOST

    def __init__(
        self,
        rates: dict | None = None,
        *,
        error: Exception | None = None,
        observed_at: datetime | None = None,
    ) -> None:
        self.rates = rates or {}
        self.error = error
        self.observed_at = observed_at
        self.calls: list[tuple[str, list[str]]] = []

    async def fetch_rates(self, base: str, currencies: Sequence[str]) -> ProviderQuote:
        self.calls.append((base, list(currencies)))
        if self.error is not None:
            raise self.error
        rates = {code: value for code, value in self.rates.items() if code in currencies}
        return ProviderQuote(base=base, rates=rates, observed_at=self.observed_at)


@pytest.fixture(autouse=True)
def reset_limiter():
    """Reset rate limiter storage before each test."""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def now() -> datetime:
    """The fixed current time used by clock-dependent fixtures."""
    return NOW


@pytest.fixture
def make_provider() -> type[FakeProvider]:
    """Factory for providers with custom rates or errors."""
    return FakeProvider


@pytest.fixture
def policy() -> FreshnessPolicy:
    """Freshness policy pinned to NOW."""
    return FreshnessPolicy(MAX_AGE, clock=lambda: NOW)


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Provider quoting USD, EUR and MYR against IDR."""
    return FakeProvider(
        {"USD": Decimal("0.0000625"), "EUR": Decimal("0.00005"), "MYR": Decimal("0.0002")},
        observed_at=NOW,
    )


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_db(test_engine) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(
    test_db: AsyncSession,
    policy: FreshnessPolicy,
    fake_provider: FakeProvider,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database, clock and provider overrides."""

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_freshness_policy] = lambda: policy
    app.dependency_overrides[get_provider] = lambda: fake_provider

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def currencies(test_db: AsyncSession) -> dict[str, Currency]:
    """IDR base (no minor unit) plus USD, EUR and MYR."""
    rows = [
        Currency(code="IDR", name="Indonesian Rupiah", symbol="Rp", is_base=True, decimal_places=0),
        Currency(code="USD", name="US Dollar", symbol="$", decimal_places=2),
        Currency(code="EUR", name="Euro", symbol="€", decimal_places=2),
        Currency(code="MYR", name="Malaysian Ringgit", symbol="RM", decimal_places=2),
    ]
    test_db.add_all(rows)
    await test_db.commit()
    return {row.code: row for row in rows}


@pytest_asyncio.fixture(scope="function")
async def stored_rates(
    test_db: AsyncSession, currencies: dict[str, Currency]
) -> dict[tuple[str, str], ExchangeRate]:
    """Seed-sourced rates in both directions, confirmed one hour before NOW."""
    repo = ExchangeRateRepository(ExchangeRate, test_db)
    observed_at = NOW - timedelta(hours=1)
    stored = {}
    for code, to_idr in RATES_TO_IDR.items():
        stored[(code, "IDR")] = await repo.upsert_rate(
            code, "IDR", to_idr, RateSource.SEED, observed_at
        )
        stored[("IDR", code)] = await repo.upsert_rate(
            "IDR", code, Decimal(1) / to_idr, RateSource.SEED, observed_at
        )
    await test_db.commit()
    return stored


@pytest.fixture
def failing_provider() -> FakeProvider:
    """Provider whose every call fails like a network outage."""
    return FakeProvider(error=ProviderUnavailable("connection refused"))
