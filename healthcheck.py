#!/usr/bin/env python3
"""
Health check script for Docker containers and deployment.

Tests database connectivity and exchange rate freshness and reports health
status. Stale rates are reported but do not fail the check: conversions keep
working with the last stored values.
"""

import asyncio
import sys
from typing import Any

import asyncpg

from fxrates.core.config import settings
from fxrates.db.session import AsyncSessionLocal, engine
from fxrates.services.exchange_rate_service import check_freshness


async def check_postgres(db_url: str) -> dict[str, Any]:
    """Check PostgreSQL connectivity."""
    try:
        conn = await asyncpg.connect(db_url)
        await conn.execute("SELECT 1")
        await conn.close()
        return {"status": "healthy", "message": "PostgreSQL connection successful"}
    except (OSError, asyncpg.PostgresError) as e:
        return {"status": "unhealthy", "message": f"PostgreSQL error: {e}"}


async def check_rates() -> dict[str, Any]:
    """Check that stored exchange rates are fresh."""
    async with AsyncSessionLocal() as db:
        report = await check_freshness(db)
    await engine.dispose()

    if report.is_fresh:
        return {"status": "healthy", "message": f"{report.total} rates fresh"}
    return {
        "status": "degraded",
        "message": (
            f"{report.total} rates, {len(report.stale)} stale, "
            f"{len(report.missing)} missing"
        ),
    }


async def main():
    """Run health checks."""
    # asyncpg takes a plain postgresql:// URL
    db_url = settings.DATABASE_URL.replace("postgresql+asyncpg://", "postgresql://")

    print("Running health checks...\n")

    postgres_result = await check_postgres(db_url)
    print(f"PostgreSQL: {postgres_result['status'].upper()}")
    print(f"  {postgres_result['message']}\n")

    if postgres_result["status"] != "healthy":
        print("Some systems unhealthy")
        sys.exit(1)

    rates_result = await check_rates()
    print(f"Exchange rates: {rates_result['status'].upper()}")
    print(f"  {rates_result['message']}\n")

    print("All systems healthy")
    sys.exit(0)


if __name__ == "__main__":
    asyncio.run(main())
