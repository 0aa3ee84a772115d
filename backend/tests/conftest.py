"""Shared pytest fixtures for backend tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from tournament_sync.config import get_settings
from tournament_sync.main import app


@pytest.fixture
async def async_client():
    """Async HTTP client for testing the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def mock_conn() -> MagicMock:
    """Mock asyncpg connection; supports `async with conn.transaction()`."""
    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.execute = AsyncMock()
    conn.executemany = AsyncMock()
    return conn


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Tests that patch the environment must not leak cached settings."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
