"""Freshness policy for stored exchange rates.

A rate is fresh while ``now - last_updated < max_age``. Staleness is advisory:
it never blocks a conversion, callers decide whether stale data is acceptable.
The same threshold applies to every pair.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol

from fxrates.core.config import settings
from fxrates.db.base import utcnow
from fxrates.repositories.exchange_rate import as_utc


class TimestampedRate(Protocol):
    from_currency: str
    to_currency: str
    last_updated: datetime


@dataclass(frozen=True)
class StaleRate:
    """A stored rate older than the freshness threshold."""

    from_currency: str
    to_currency: str
    last_updated: datetime
    age: timedelta


@dataclass(frozen=True)
class FreshnessReport:
    """Outcome of evaluating a set of rates against the policy.

    ``is_fresh`` is False when there are no rates at all, when any rate is
    stale, or when a required pair is missing.
    """

    checked_at: datetime
    max_age: timedelta
    total: int
    stale: list[StaleRate] = field(default_factory=list)
    missing: list[tuple[str, str]] = field(default_factory=list)

    @property
    def is_fresh(self) -> bool:
        return self.total > 0 and not self.stale and not self.missing


class FreshnessPolicy:
    """Decides whether a rate's ``last_updated`` is recent enough to trust.

    Args:
        max_age: Threshold after which a rate is stale (must be positive)
        clock: Returns the current aware datetime; injectable for tests
    """

    def __init__(
        self,
        max_age: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if max_age <= timedelta(0):
            raise ValueError(f"max_age must be positive, got {max_age}")
        self.max_age = max_age
        self._clock = clock

    @classmethod
    def from_settings(cls, clock: Callable[[], datetime] = utcnow) -> "FreshnessPolicy":
        return cls(timedelta(hours=settings.RATE_MAX_AGE_HOURS), clock=clock)

    def now(self) -> datetime:
        return as_utc(self._clock())

    def age(self, last_updated: datetime, now: datetime | None = None) -> timedelta:
        return (now or self.now()) - as_utc(last_updated)

    def is_fresh(self, last_updated: datetime, now: datetime | None = None) -> bool:
        return self.age(last_updated, now) < self.max_age

    def is_rate_fresh(self, rate: TimestampedRate, now: datetime | None = None) -> bool:
        return self.is_fresh(rate.last_updated, now)

    def evaluate(
        self,
        rates: Iterable[TimestampedRate],
        *,
        required_pairs: Iterable[tuple[str, str]] = (),
    ) -> FreshnessReport:
        """Evaluate a collection of rates.

        Args:
            rates: Stored rates to check
            required_pairs: Pairs that must be present for the data to count as fresh

        Returns:
            FreshnessReport listing stale and missing pairs
        """
        now = self.now()
        total = 0
        stale: list[StaleRate] = []
        present: set[tuple[str, str]] = set()

        for rate in rates:
            total += 1
            present.add((rate.from_currency, rate.to_currency))
            age = self.age(rate.last_updated, now)
            if age >= self.max_age:
                stale.append(
                    StaleRate(
                        from_currency=rate.from_currency,
                        to_currency=rate.to_currency,
                        last_updated=as_utc(rate.last_updated),
                        age=age,
                    )
                )

        missing = sorted(pair for pair in set(required_pairs) if pair not in present)
        return FreshnessReport(
            checked_at=now,
            max_age=self.max_age,
            total=total,
            stale=stale,
            missing=missing,
        )
