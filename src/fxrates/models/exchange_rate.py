"""Exchange rate model for directional rates between currency pairs."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fxrates.core.constants import RateConstants
from fxrates.db.base import Base, TimestampMixin


class RateSource(str, enum.Enum):
    """Provenance of a stored rate.

    SEED marks bootstrap data never confirmed by a live source. Every other
    member names the external provider that supplied the value.
    """

    SEED = "seed"
    EXCHANGERATE_HOST = "exchangerate.host"
    YFINANCE = "yfinance"

    @property
    def is_seed(self) -> bool:
        return self is RateSource.SEED


class ExchangeRate(Base, TimestampMixin):
    """Directional exchange rate for one ordered currency pair.

    One row per (from_currency, to_currency). The inverse pair is a separate
    row so both directions can diverge when a provider reports a spread.
    Rows are superseded in place by upserts and never deleted.

    Attributes:
        id: Unique identifier for the rate
        from_currency: Source currency code (e.g., "USD")
        to_currency: Target currency code (e.g., "IDR")
        rate: 1 unit of from_currency equals ``rate`` units of to_currency
        source: RateSource the current value came from
        last_updated: When the value was last confirmed correct
        created_at: Row creation time
        updated_at: Row modification time
    """

    __tablename__ = "exchange_rates"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    from_currency: Mapped[str] = mapped_column(
        String(3), ForeignKey("currencies.code", ondelete="RESTRICT"), index=True
    )
    to_currency: Mapped[str] = mapped_column(
        String(3), ForeignKey("currencies.code", ondelete="RESTRICT"), index=True
    )
    rate: Mapped[Decimal] = mapped_column(
        Numeric(RateConstants.RATE_PRECISION, RateConstants.RATE_SCALE)
    )
    source: Mapped[RateSource] = mapped_column(
        Enum(
            RateSource,
            name="rate_source",
            native_enum=False,
            length=32,
            validate_strings=True,
            values_callable=lambda members: [member.value for member in members],
        )
    )
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("from_currency", "to_currency", name="uq_exchange_rates_pair"),
        CheckConstraint("rate > 0", name="rate_positive"),
        CheckConstraint("from_currency <> to_currency", name="distinct_currencies"),
    )

    @property
    def pair(self) -> tuple[str, str]:
        return (self.from_currency, self.to_currency)

    def __repr__(self) -> str:
        return (
            f"<ExchangeRate {self.from_currency}->{self.to_currency} "
            f"{self.rate} ({self.source.value})>"
        )
