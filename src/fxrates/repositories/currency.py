"""Currency repository for currency reference data."""

from sqlalchemy import select

from fxrates.models.currency import Currency
from fxrates.repositories.base import BaseRepository


class CurrencyRepository(BaseRepository[Currency]):
    """Repository for Currency model.

    Example:
        >>> repo = CurrencyRepository(Currency, db)
        >>> base = await repo.get_base()
    """

    async def get_by_code(self, code: str) -> Currency | None:
        """Get a currency by code (case-insensitive)."""
        return await self.get(code.upper())

    async def list_currencies(self, *, active_only: bool = True) -> list[Currency]:
        """List currencies ordered by code.

        Args:
            active_only: Exclude inactive currencies (default: True)

        Returns:
            List of currencies
        """
        query = select(Currency)
        if active_only:
            query = query.where(Currency.is_active.is_(True))
        result = await self.db.execute(query.order_by(Currency.code))
        return list(result.scalars().all())

    async def get_base(self) -> Currency | None:
        """Get the active base currency, if one is configured."""
        result = await self.db.execute(
            select(Currency).where(Currency.is_base.is_(True), Currency.is_active.is_(True))
        )
        return result.scalar_one_or_none()
