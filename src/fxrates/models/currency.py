"""Currency model for the storefront's supported currencies (IDR, USD, EUR, etc.)."""

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from fxrates.core.constants import RateConstants
from fxrates.db.base import Base, TimestampMixin


class Currency(Base, TimestampMixin):
    """Currency reference data.

    Exactly one currency is the base: every stored rate is expressed against
    it, and conversions between two non-base currencies are composed through
    it. A partial unique index guarantees at most one base row; the services
    refuse to remove the flag from, or deactivate, the current base.

    Attributes:
        code: ISO 4217 currency code (e.g., "USD", "IDR") - primary key
        name: Full name of the currency (e.g., "US Dollar")
        symbol: Currency symbol (e.g., "$", "Rp")
        is_base: Whether this is the pivot currency
        is_active: Inactive currencies are hidden and cannot be converted
        decimal_places: Minor unit digits used when rounding conversions
    """

    __tablename__ = "currencies"

    code: Mapped[str] = mapped_column(String(3), primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    symbol: Mapped[str] = mapped_column(String(10))
    is_base: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    decimal_places: Mapped[int] = mapped_column(
        Integer, default=RateConstants.DEFAULT_DECIMAL_PLACES
    )

    __table_args__ = (
        CheckConstraint("decimal_places >= 0", name="decimal_places_non_negative"),
        Index(
            "uq_currencies_single_base",
            "is_base",
            unique=True,
            postgresql_where=text("is_base"),
            sqlite_where=text("is_base = 1"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Currency {self.code} base={self.is_base} active={self.is_active}>"
