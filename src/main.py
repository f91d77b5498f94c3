"""FastAPI application entry point."""

import logging
import logging.config
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from fxrates.api.routes import currencies, health, rates
from fxrates.core.config import settings
from fxrates.core.exceptions import AppException, app_exception_handler
from fxrates.core.rate_limit import limiter, rate_limit_exceeded_handler
from fxrates.db.base import Base
from fxrates.db.session import AsyncSessionLocal, engine
from fxrates.services.exchange_rate_service import refresh_if_stale

# Configure logging
logging.config.dictConfig(settings.LOGGING_CONFIG)
logger = logging.getLogger(__name__)


async def _refresh_stale_rates() -> None:
    async with AsyncSessionLocal() as db:
        try:
            result = await refresh_if_stale(db)
        except AppException as e:
            # Startup continues on stale rates; conversions still work
            logger.warning(f"Startup rate refresh failed: {e.detail}")
            return
    if result is not None and not result.succeeded:
        logger.warning(f"Startup rate refresh left {len(result.failures)} pairs failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})")

    async with engine.begin() as conn:
        # Create tables (use Alembic in production)
        if settings.ENVIRONMENT == "development":
            await conn.run_sync(Base.metadata.create_all)

    if settings.REFRESH_RATES_ON_STARTUP:
        await _refresh_stale_rates()

    yield

    logger.info("Shutting down")
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_CREDENTIALS,
    allow_methods=settings.CORS_METHODS,
    allow_headers=settings.CORS_HEADERS,
)

# Register exception handlers
app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(currencies.router, prefix="/api/v1/currencies", tags=["currencies"])
app.include_router(rates.router, prefix="/api/v1/rates", tags=["rates"])
