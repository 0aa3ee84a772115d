"""Shared FastAPI dependencies for API routes."""

from collections.abc import AsyncGenerator

from fastapi import HTTPException

from tournament_sync.db import get_pool
from tournament_sync.services.fpl_client import FplApiClient


def require_db() -> None:
    """FastAPI dependency that requires database availability.

    Raises HTTPException 503 if the database pool is not initialized.

    Usage:
        @router.post("/endpoint")
        async def endpoint(_: None = Depends(require_db)):
            ...
    """
    try:
        get_pool()
    except RuntimeError as e:
        raise HTTPException(
            status_code=503,
            detail="Database not available. This feature requires database connection.",
        ) from e


async def get_fpl_client() -> AsyncGenerator[FplApiClient, None]:
    """FPL client scoped to one request."""
    async with FplApiClient() as client:
        yield client
