#!/usr/bin/env python3
"""Print every stored exchange rate with its source and freshness.

Ends with a summary of how many pairs still carry seed values versus values
confirmed by a live provider.

Usage:
    python check_exchange_rates.py
"""

import asyncio

import pandas as pd  # type: ignore[import-untyped]

from fxrates.db.session import AsyncSessionLocal, engine
from fxrates.services.exchange_rate_service import load_rate_table
from fxrates.services.freshness import FreshnessPolicy


async def main() -> None:
    policy = FreshnessPolicy.from_settings()
    async with AsyncSessionLocal() as db:
        table = await load_rate_table(db, policy)
    await engine.dispose()

    if not table.rates:
        print("No exchange rates stored. Run seed_rates.py first.")
        return

    now = table.report.checked_at
    df = pd.DataFrame(
        [
            {
                "pair": "->".join(rate.pair),
                "rate": rate.rate,
                "source": rate.source.value,
                "seed": rate.source.is_seed,
                "last_updated": rate.last_updated,
                "age_hours": round(policy.age(rate.last_updated, now).total_seconds() / 3600, 2),
                "fresh": policy.is_fresh(rate.last_updated, now),
            }
            for rate in table.rates
        ]
    )

    print(f"Base currency: {table.base_currency or '(none)'}")
    print(f"Max age: {policy.max_age}\n")
    print(df.to_string(index=False))

    seeded = int(df["seed"].sum())
    print(f"\nSeed values: {seeded}  provider values: {len(df) - seeded}")
    print(f"Stale: {int((~df['fresh']).sum())}  missing: {len(table.report.missing)}")
    print(f"Overall: {'FRESH' if table.report.is_fresh else 'STALE'}")


if __name__ == "__main__":
    asyncio.run(main())
