#!/usr/bin/env python3
"""Run one live exchange rate refresh and print the per-pair report.

Meant for cron, three times a day:
    0 0,8,16 * * *  cd /app && python refresh_rates.py

Exit codes:
    0: every pair updated
    1: the provider call failed, nothing was written
    2: some pairs failed, the rest were updated
"""

import argparse
import asyncio
import logging
import logging.config
import sys

from fxrates.core.config import settings
from fxrates.core.exceptions import AppException
from fxrates.db.session import AsyncSessionLocal, engine
from fxrates.services.exchange_rate_service import refresh_exchange_rates, refresh_if_stale
from fxrates.services.rate_providers import get_rate_provider

logging.config.dictConfig(settings.LOGGING_CONFIG)
logger = logging.getLogger("fxrates.scripts.refresh_rates")


async def main(provider_name: str | None, only_if_stale: bool) -> int:
    provider = get_rate_provider(provider_name)
    async with AsyncSessionLocal() as db:
        try:
            if only_if_stale:
                result = await refresh_if_stale(db, provider)
            else:
                result = await refresh_exchange_rates(db, provider)
        except AppException as e:
            logger.error(f"Refresh failed: {e.detail} (retryable={e.retryable})")
            return 1
        finally:
            await engine.dispose()

    if result is None:
        print("Rates are fresh, nothing to do")
        return 0

    print(f"Provider: {result.source.value}  base: {result.base_currency}")
    print(f"Observed at: {result.observed_at.isoformat()}")
    for from_code, to_code in result.updated:
        print(f"  ok    {from_code}->{to_code}")
    for failure in result.failures:
        retry = "retryable" if failure.retryable else "permanent"
        print(
            f"  FAIL  {failure.from_currency}->{failure.to_currency} "
            f"[{failure.error_code}, {retry}] {failure.detail}"
        )
    return 0 if result.succeeded else 2


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--provider",
        choices=["exchangerate.host", "yfinance"],
        help="Override the RATE_PROVIDER setting",
    )
    parser.add_argument(
        "--if-stale",
        action="store_true",
        help="Only refresh when stored rates are not fresh",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.provider, args.if_stale)))
