"""
Health check endpoint.

Used by container HEALTHCHECK, load balancers and the front-end to check
API connectivity.

Returns status + DB connectivity so callers can distinguish between
"API down" and "API up but DB unreachable" (in which case companion
requests will fail at the pairing lookup).
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from app.core import database as db_module
from app.core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    status: str  # Always "ok" if the API process is alive
    version: str
    database: str  # "connected" | "disconnected"
    environment: str
    ai_mode: str  # "mock" | "real"


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check() -> HealthResponse:
    """Liveness of the API plus the state of its MongoDB connection."""
    from app.ai.gemini_client import gemini_client

    db_status = "disconnected"
    try:
        # Access via module reference so tests can patch db_module.db_client
        if db_module.db_client.client is not None:
            await db_module.db_client.client.admin.command("ping")
            db_status = "connected"
    except Exception as exc:
        logger.warning("DB ping failed: %s", exc)

    return HealthResponse(
        status="ok",
        version="0.1.0",
        database=db_status,
        environment=settings.environment,
        ai_mode="mock" if gemini_client.mock_mode else "real",
    )
