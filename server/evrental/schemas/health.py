"""Health-related Pydantic schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: HealthStatus = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    environment: str = Field(..., description="Deployment environment")
    timestamp: datetime = Field(..., description="Check time (ISO 8601)")


class ReadinessResponse(BaseModel):
    """Readiness check response schema."""

    status: HealthStatus = Field(..., description="Readiness status")
    checks: dict[str, str] = Field(..., description="Per-dependency check results")
