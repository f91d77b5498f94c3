"""Exchange rate repository: the durable rate store.

Every write is a single ``INSERT ... ON CONFLICT`` statement keyed on the
ordered pair, so concurrent writers never observe a row with a new rate but
an old source or timestamp. Values are validated before the statement is
built; an invalid rate or source never reaches the database.
"""

import math
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite

from fxrates.core.exceptions import InvalidRate, InvalidRateSource
from fxrates.db.base import utcnow
from fxrates.models.exchange_rate import ExchangeRate, RateSource
from fxrates.repositories.base import BaseRepository

# Dialect-specific INSERT constructs that support ON CONFLICT
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def parse_rate(value: Any) -> Decimal:
    """Validate a rate value and return it as a Decimal.

    Accepts ints, floats, Decimals and numeric strings. Floats go through
    ``str()`` so 0.92 stays Decimal("0.92") rather than its binary expansion.

    Args:
        value: Raw rate value (from a provider payload or an admin request)

    Returns:
        The rate as a positive, finite Decimal

    Raises:
        InvalidRate: If the value is not numeric, not finite, or not positive
    """
    if isinstance(value, bool) or value is None:
        raise InvalidRate(f"Rate must be numeric, got {value!r}")

    try:
        if isinstance(value, float):
            if not math.isfinite(value):
                raise InvalidRate(f"Rate must be finite, got {value!r}")
            rate = Decimal(str(value))
        else:
            rate = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidRate(f"Rate must be numeric, got {value!r}") from e

    if not rate.is_finite():
        raise InvalidRate(f"Rate must be finite, got {value!r}")
    if rate <= 0:
        raise InvalidRate(f"Rate must be positive, got {rate}")
    return rate


def parse_source(source: RateSource | str) -> RateSource:
    """Coerce a source tag into RateSource.

    Raises:
        InvalidRateSource: If the tag is not a known source
    """
    try:
        return RateSource(source)
    except ValueError as e:
        allowed = ", ".join(member.value for member in RateSource)
        raise InvalidRateSource(f"Unknown rate source {source!r} (allowed: {allowed})") from e


def as_utc(moment: datetime) -> datetime:
    """Return ``moment`` as an aware UTC datetime (naive values are taken as UTC)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


class ExchangeRateRepository(BaseRepository[ExchangeRate]):
    """Repository for ExchangeRate model.

    Lookups are exact-pair only: no implicit inversion or composition.
    Callers that need a composed rate go through the conversion engine.

    Example:
        >>> repo = ExchangeRateRepository(ExchangeRate, db)
        >>> await repo.upsert_rate("USD", "IDR", 16604.6, RateSource.EXCHANGERATE_HOST)
        >>> rate = await repo.get_rate("USD", "IDR")
    """

    def _insert(self):
        try:
            return _UPSERT_INSERTS[self.dialect_name]
        except KeyError:
            raise NotImplementedError(
                f"Upserts are not supported on the {self.dialect_name!r} dialect"
            ) from None

    async def get_rate(self, from_currency: str, to_currency: str) -> ExchangeRate | None:
        """Get the stored rate for an ordered pair.

        Args:
            from_currency: Source currency code
            to_currency: Target currency code

        Returns:
            ExchangeRate if a record exists for exactly this direction, None otherwise
        """
        result = await self.db.execute(
            select(ExchangeRate).where(
                ExchangeRate.from_currency == from_currency.upper(),
                ExchangeRate.to_currency == to_currency.upper(),
            )
        )
        return result.scalar_one_or_none()

    async def list_rates(self) -> list[ExchangeRate]:
        """List every stored rate ordered by target then source currency."""
        result = await self.db.execute(
            select(ExchangeRate).order_by(ExchangeRate.to_currency, ExchangeRate.from_currency)
        )
        return list(result.scalars().all())

    async def upsert_rate(
        self,
        from_currency: str,
        to_currency: str,
        rate: Any,
        source: RateSource | str,
        observed_at: datetime | None = None,
    ) -> ExchangeRate:
        """Create or overwrite the single record for an ordered pair.

        Args:
            from_currency: Source currency code
            to_currency: Target currency code
            rate: Units of to_currency per 1 unit of from_currency
            source: Provenance tag
            observed_at: When the value was confirmed (default: now)

        Returns:
            The stored ExchangeRate (flushed, not yet committed)

        Raises:
            InvalidRate: If the rate is not a positive number; nothing is written
            InvalidRateSource: If the source is unknown; nothing is written
        """
        values = self._row_values(from_currency, to_currency, rate, source, observed_at)
        stmt = self._insert()(ExchangeRate).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ExchangeRate.from_currency, ExchangeRate.to_currency],
            set_={
                "rate": stmt.excluded.rate,
                "source": stmt.excluded.source,
                "last_updated": stmt.excluded.last_updated,
                "updated_at": utcnow(),
            },
        ).returning(ExchangeRate)

        result = await self.db.scalars(stmt, execution_options={"populate_existing": True})
        return result.one()

    async def insert_rate_if_absent(
        self,
        from_currency: str,
        to_currency: str,
        rate: Any,
        source: RateSource | str,
        observed_at: datetime | None = None,
    ) -> bool:
        """Insert a rate only when the pair has no record yet.

        Never touches an existing row, whatever its source.

        Returns:
            True if a row was inserted, False if the pair already existed

        Raises:
            InvalidRate: If the rate is not a positive number
            InvalidRateSource: If the source is unknown
        """
        values = self._row_values(from_currency, to_currency, rate, source, observed_at)
        stmt = (
            self._insert()(ExchangeRate)
            .values(**values)
            .on_conflict_do_nothing(
                index_elements=[ExchangeRate.from_currency, ExchangeRate.to_currency]
            )
            .returning(ExchangeRate.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    def _row_values(
        from_currency: str,
        to_currency: str,
        rate: Any,
        source: RateSource | str,
        observed_at: datetime | None,
    ) -> dict[str, Any]:
        from_code = from_currency.upper()
        to_code = to_currency.upper()
        if from_code == to_code:
            raise InvalidRate(f"A rate needs two different currencies, got {from_code}->{to_code}")

        return {
            "from_currency": from_code,
            "to_currency": to_code,
            "rate": parse_rate(rate),
            "source": parse_source(source),
            "last_updated": as_utc(observed_at) if observed_at else utcnow(),
        }
