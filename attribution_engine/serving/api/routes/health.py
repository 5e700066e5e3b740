"""
Health Check Endpoints

Provides health and liveness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel

from attribution_engine.config import get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    The engine has no backing services; the check reports the attribution
    configuration the process is running with.
    """
    settings = get_settings()
    attribution = settings.attribution
    return HealthResponse(
        status="healthy",
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks={
            "attribution": {
                "status": "healthy",
                "weight_field": attribution.weight_field,
                "include_unattributed_row": attribution.include_unattributed_row,
                "mapped_networks": sorted(attribution.source_mapping),
            },
        },
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}
