"""
Health check router.

Liveness/readiness probe. Reports the application version and whether
ledger storage answers a trivial query.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from papertrade.core.config import settings
from papertrade.infrastructure.trading.database import get_engine
from papertrade.interfaces.trading.schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns application health status, version and storage status.",
)
def health_check(engine: Engine = Depends(get_engine)) -> HealthResponse:
    """Return current application health status."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:
        logger.error("Health check could not reach storage: %s", type(exc).__name__)
        database = "unavailable"
    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        version=settings.version,
        database=database,
    )
