"""Health check endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fxrates.core.deps import get_freshness_policy
from fxrates.db.session import get_db
from fxrates.services.exchange_rate_service import check_freshness
from fxrates.services.freshness import FreshnessPolicy

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@router.get("/health/db")
async def database_health(db: Annotated[AsyncSession, Depends(get_db)]):
    """Database health check."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except SQLAlchemyError as e:
        return {"status": "unhealthy", "database": str(e)}


@router.get("/health/rates")
async def rates_health(
    db: Annotated[AsyncSession, Depends(get_db)],
    policy: Annotated[FreshnessPolicy, Depends(get_freshness_policy)],
):
    """
    Exchange rate freshness.

    Reports "degraded" rather than "unhealthy" when rates are stale:
    conversions keep working with the last stored values.
    """
    report = await check_freshness(db, policy)
    return {
        "status": "healthy" if report.is_fresh else "degraded",
        "rates": {
            "total": report.total,
            "stale": len(report.stale),
            "missing": len(report.missing),
            "max_age_hours": report.max_age.total_seconds() / 3600,
        },
    }
