"""
Health check endpoint.

Provides system health status for monitoring and load balancers.
"""

from fastapi import APIRouter

from greendocs import __version__
from greendocs.api.schemas import HealthResponse
from greendocs.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Check system health.

    Returns the version and configured models for monitoring dashboards
    and load balancer health checks.
    """
    settings = get_settings()

    return HealthResponse(
        status="healthy",
        version=__version__,
        extraction_model=settings.extraction_model,
        analysis_model=settings.analysis_model,
    )
