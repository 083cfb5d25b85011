"""Liveness, readiness and Prometheus scrape endpoints."""

import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db, ping_db
from ..core.observability import SERVICE_NAME, SERVICE_VERSION, get_prometheus_metrics
from ..core.timeutils import utcnow
from ..schemas.health import HealthResponse, HealthStatus, ReadinessResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

DB_DEPENDENCY = Depends(get_db)


@router.get("/health", response_model=HealthResponse)
async def health_check() -> JSONResponse:
    """
    Liveness check.

    Returns current service status and timestamp without touching the database.
    """
    response_data = HealthResponse(
        status=HealthStatus.HEALTHY,
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        environment=settings.environment,
        timestamp=utcnow(),
    )

    logger.debug("Health check requested", extra={"status": response_data.status.value})

    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Readiness check: 200 when the database answers, 503 otherwise."""
    try:
        database_ok = await ping_db(db)
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Readiness check failed", extra={"error": str(e)})
        database_ok = False

    response_data = ReadinessResponse(
        status=HealthStatus.READY if database_ok else HealthStatus.UNAVAILABLE,
        checks={"database": "ok" if database_ok else "unavailable"},
    )
    return JSONResponse(status_code=200 if database_ok else 503, content=response_data.model_dump(mode="json"))


@router.get("/metrics", response_class=Response, tags=["observability"])
async def metrics() -> Response:
    """Request, booking and payment metrics in the Prometheus text format."""
    return Response(content=get_prometheus_metrics(), media_type="text/plain; version=0.0.4; charset=utf-8")
