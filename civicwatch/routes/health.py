"""
Health check endpoint.

Used by:
  - Docker HEALTHCHECK instruction
  - Load balancers / orchestrators
  - The admin dashboard to check API connectivity

Returns status + DB connectivity so callers can distinguish between
"API down" and "API up but report store unreachable".
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from civicwatch.core import database as db_module
from civicwatch.core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()

API_VERSION = "0.1.0"


class HealthResponse(BaseModel):
    status: str  # Always "ok" if the API process is alive
    version: str
    database: str  # "connected" | "disconnected"
    environment: str
    insight_mode: str  # "mock" | "real" | "disabled"


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check() -> HealthResponse:
    """
    Returns the liveness status of the API and its database connection.

    The API is healthy (HTTP 200) even when the database is disconnected:
    request-supplied analysis and facility search do not need it.
    """
    db_status = "disconnected"
    try:
        # Access via module reference so tests can patch db_module.db_client
        if db_module.db_client.client is not None:
            await db_module.db_client.client.admin.command("ping")
            db_status = "connected"
    except Exception as exc:
        logger.warning("DB ping failed: %s", exc)

    if not settings.insight_enabled:
        insight_mode = "disabled"
    else:
        insight_mode = "mock" if settings.ai_mock_mode else "real"

    return HealthResponse(
        status="ok",
        version=API_VERSION,
        database=db_status,
        environment=settings.environment,
        insight_mode=insight_mode,
    )
