"""Health check endpoint.

Verifies connectivity to the database and Redis, returns structured status.
Redis is optional: without it the service runs with idempotency disabled, so
a missing Redis reports "disabled" rather than degrading the status.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text

from escrow_bonds.api.deps import get_context
from escrow_bonds.context import BondingContext
from escrow_bonds.logging_config import get_logger
from escrow_bonds.schemas.bond import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check(context: BondingContext = Depends(get_context)) -> HealthResponse:
    db_status = "unknown"
    redis_status = "disabled"

    try:
        async with context.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    if context.idempotency.enabled:
        try:
            await context.idempotency.ping()
            redis_status = "healthy"
        except Exception as exc:
            redis_status = f"unhealthy: {exc}"
            logger.error("health.redis_check_failed", error=str(exc))

    healthy = db_status == "healthy" and not redis_status.startswith("unhealthy")
    overall = "ok" if healthy else "degraded"

    return HealthResponse(status=overall, database=db_status, redis=redis_status)
