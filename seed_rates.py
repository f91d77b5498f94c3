#!/usr/bin/env python3
"""Seed configured currencies and bootstrap exchange rates.

Safe to run repeatedly: existing currencies and rates are never overwritten.

Usage:
    python seed_rates.py
"""

import asyncio
import logging
import logging.config

from fxrates.core.config import settings
from fxrates.db.base import Base
from fxrates.db.session import AsyncSessionLocal, engine
from fxrates.services.exchange_rate_service import seed

logging.config.dictConfig(settings.LOGGING_CONFIG)
logger = logging.getLogger("fxrates.scripts.seed_rates")


async def main() -> None:
    if settings.ENVIRONMENT == "development":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        result = await seed(db)
    await engine.dispose()

    print(f"Currencies created: {', '.join(result.currencies_created) or 'none'}")
    print(f"Rates created: {len(result.created)}")
    for from_code, to_code in result.created:
        print(f"  + {from_code}->{to_code}")
    print(f"Rates skipped (already present): {len(result.skipped)}")


if __name__ == "__main__":
    asyncio.run(main())
