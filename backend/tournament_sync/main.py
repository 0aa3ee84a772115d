"""Main FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tournament_sync.api.sync import router as sync_router
from tournament_sync.config import get_settings
from tournament_sync.db import close_pool, get_pool, init_pool

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Open the database pool if configured; sync routes answer 503 without it."""
    logger.info("Starting Tournament Sync Backend")
    logger.info(f"FPL API base: {settings.fpl_api_base_url}")
    if settings.db_connection_string:
        try:
            await init_pool()
        except (OSError, ValueError) as e:
            logger.error(f"Database unavailable at startup: {e}")
    else:
        logger.warning("DATABASE_URL not set, sync endpoints are disabled")
    yield
    logger.info("Shutting down Tournament Sync Backend")
    await close_pool()


# Create FastAPI app
app = FastAPI(
    title="Tournament Sync Backend",
    description="Computes FPL tournament league and cup results per gameweek",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(sync_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness check. Reports whether the sync routes can reach the database."""
    try:
        get_pool()
    except RuntimeError:
        return {"status": "healthy", "database": "unavailable"}
    return {"status": "healthy", "database": "available"}
