"""
pytest configuration and shared fixtures for the CivicWatch Analytics tests.

Key concern: tests must not require a live MongoDB, Gemini API key or
network access to Overpass. We achieve this by:
  1. Patching connect_to_mongo / close_mongo_connection to no-ops so
     FastAPI's lifespan doesn't try to reach a real database.
  2. Setting db_client.client = None (disconnected) so health check
     correctly reports "disconnected" — a valid test-mode state.
  3. Ensuring AI_MOCK_MODE=true so GeminiClient returns canned responses.
  4. Overriding the hospital finder / report store dependencies per test.
"""

import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("AI_MOCK_MODE", "true")
os.environ.setdefault("ENVIRONMENT", "test")

# Friday 17 May 2024, 18:30 UTC
BASE_TS = datetime(2024, 5, 17, 18, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
async def mock_db():
    """
    Patch the MongoDB lifecycle for every test.

    - connect_to_mongo → no-op AsyncMock (startup doesn't attempt real connection)
    - close_mongo_connection → no-op AsyncMock
    - db_client.client / db_client.db → None
    """
    with (
        patch("civicwatch.core.database.connect_to_mongo", new_callable=AsyncMock),
        patch("civicwatch.core.database.close_mongo_connection", new_callable=AsyncMock),
    ):
        import civicwatch.core.database as db_module

        original_client = db_module.db_client.client
        original_db = db_module.db_client.db

        db_module.db_client.client = None
        db_module.db_client.db = None

        yield

        db_module.db_client.client = original_client
        db_module.db_client.db = original_db


@pytest.fixture()
async def client(mock_db):  # noqa: ARG001  mock_db must run first
    """
    HTTPX async test client wired to the FastAPI app.

    Rate-limit counters are reset so earlier tests don't bleed into this one.
    """
    from civicwatch.core.rate_limit import limiter
    from civicwatch.main import app

    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
def make_report():
    """
    Factory for Report objects with sensible defaults.

    Usage:
        r = make_report("R-1", lat=51.5, lon=-0.12, type="police")
    """
    from civicwatch.models.report import Location, Report

    def _make(
        report_id: str,
        lat=51.5074,
        lon=-0.1278,
        type="medical",
        status="pending",
        severity=None,
        created_at=BASE_TS,
        is_real=True,
    ) -> Report:
        return Report(
            id=report_id,
            type=type,
            location=Location(latitude=lat, longitude=lon, is_real=is_real),
            status=status,
            severity=severity,
            created_at=created_at,
        )

    return _make
