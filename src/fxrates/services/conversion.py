"""Currency conversion against an immutable snapshot of the rate store.

Conversion is a pure, synchronous function of a ``RateSnapshot``: it performs
no I/O, no writes and never triggers a refresh, so pricing code can call it
inline once it holds a snapshot (from the database or from the client cache).

Rate resolution:
1. Same currency: the amount is returned untouched.
2. A stored rate for exactly (from, to).
3. Composition through the base currency: rate(from->base) * rate(base->to).
   Inverses are never derived from the opposite direction.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any

from fxrates.core.exceptions import RateUnavailable, UnknownCurrency


@dataclass(frozen=True)
class CurrencyInfo:
    """The parts of a currency conversion cares about."""

    code: str
    decimal_places: int
    is_base: bool = False

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount, e.g. Decimal("0.01")."""
        return Decimal(1).scaleb(-self.decimal_places)


@dataclass(frozen=True)
class RateSnapshot:
    """Point-in-time view of active currencies and their directional rates.

    Only active currencies are included; rates touching an inactive currency
    are dropped when the snapshot is built.
    """

    base_code: str | None
    currencies: Mapping[str, CurrencyInfo]
    rates: Mapping[tuple[str, str], Decimal] = field(default_factory=dict)
    last_updated: Mapping[tuple[str, str], datetime] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        currencies: Iterable[Any],
        rates: Iterable[Any],
    ) -> "RateSnapshot":
        """Build a snapshot from currency and rate records.

        Args:
            currencies: Objects with code, decimal_places, is_base and is_active
            rates: Objects with from_currency, to_currency, rate and last_updated

        Returns:
            RateSnapshot limited to active currencies
        """
        active = {
            c.code: CurrencyInfo(code=c.code, decimal_places=c.decimal_places, is_base=c.is_base)
            for c in currencies
            if c.is_active
        }
        base_code = next((info.code for info in active.values() if info.is_base), None)
        kept = [r for r in rates if r.from_currency in active and r.to_currency in active]
        return cls(
            base_code=base_code,
            currencies=active,
            rates={(r.from_currency, r.to_currency): Decimal(r.rate) for r in kept},
            last_updated={(r.from_currency, r.to_currency): r.last_updated for r in kept},
        )

    def currency(self, code: str) -> CurrencyInfo:
        """Resolve an active currency.

        Raises:
            UnknownCurrency: If the code is missing or inactive
        """
        try:
            return self.currencies[code.upper()]
        except KeyError:
            raise UnknownCurrency(f"Currency {code.upper()} is not an active currency") from None

    def get_rate(self, from_currency: str, to_currency: str) -> Decimal | None:
        """Exact-pair lookup, no inversion or composition."""
        return self.rates.get((from_currency.upper(), to_currency.upper()))

    def resolve_legs(self, from_currency: str, to_currency: str) -> list[tuple[str, str]]:
        """Stored pairs whose product is the effective rate for (from, to).

        Returns the direct pair when one is stored, otherwise the legs through
        the base currency. A leg whose two ends coincide (one side is the base)
        is omitted since its rate is 1. Same-currency input yields no legs.

        Raises:
            RateUnavailable: If neither a direct nor a composed rate exists
        """
        from_code, to_code = from_currency.upper(), to_currency.upper()
        if from_code == to_code:
            return []
        if (from_code, to_code) in self.rates:
            return [(from_code, to_code)]

        if self.base_code is None:
            raise RateUnavailable(
                f"No rate for {from_code}->{to_code} and no base currency to compose through"
            )

        legs = [
            leg
            for leg in ((from_code, self.base_code), (self.base_code, to_code))
            if leg[0] != leg[1]
        ]
        if any(leg not in self.rates for leg in legs):
            raise RateUnavailable(
                f"No rate for {from_code}->{to_code}, directly or via {self.base_code}"
            )
        return legs

    def resolve_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Find the effective rate for a pair, composing through the base if needed.

        Raises:
            RateUnavailable: If neither a direct nor a composed rate exists
        """
        rate = Decimal(1)
        for leg in self.resolve_legs(from_currency, to_currency):
            rate *= self.rates[leg]
        return rate


def to_decimal(amount: Any) -> Decimal:
    """Convert an amount to Decimal, going through str() for floats."""
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, bool):
        raise TypeError(f"Amount must be numeric, got {amount!r}")
    if isinstance(amount, float):
        return Decimal(str(amount))
    return Decimal(amount)


def round_to_currency(amount: Decimal, currency: CurrencyInfo) -> Decimal:
    """Round half-to-even to the currency's minor unit."""
    return amount.quantize(currency.minor_unit, rounding=ROUND_HALF_EVEN)


def convert(
    snapshot: RateSnapshot,
    amount: Any,
    from_currency: str,
    to_currency: str,
) -> Any:
    """Convert an amount between two currencies.

    Args:
        snapshot: Rates and currencies to convert with
        amount: Amount in from_currency
        from_currency: Source currency code
        to_currency: Target currency code

    Returns:
        ``amount`` itself when both codes are equal; otherwise the converted
        amount as a Decimal rounded to the target currency's decimal places

    Raises:
        UnknownCurrency: If either currency is missing or inactive
        RateUnavailable: If no direct or base-composed rate exists

    Example:
        >>> convert(snapshot, Decimal("10"), "USD", "IDR")
        Decimal('166046')
    """
    if from_currency.upper() == to_currency.upper():
        return amount

    source = snapshot.currency(from_currency)
    target = snapshot.currency(to_currency)
    rate = snapshot.resolve_rate(source.code, target.code)
    return round_to_currency(to_decimal(amount) * rate, target)
