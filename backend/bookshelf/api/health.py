"""Health check endpoint with database connectivity check.

Accessible without authentication on both /health and /api/health.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel

from bookshelf.api.deps import get_config
from bookshelf.core import Settings, check_db_connection

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    cache: str


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        status.HTTP_200_OK: {"description": "Service is healthy"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Service is unhealthy"},
    },
)
async def health_check(
    request: Request,
    response: Response,
    config: Settings = Depends(get_config),
) -> HealthResponse:
    """
    Health check endpoint.

    Returns 503 if the database is unavailable. A degraded cache does not
    make the service unhealthy; the active backend is reported instead.
    """
    db_healthy = await check_db_connection(request.app.state.session_factory)

    # Set appropriate status code for container orchestration
    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    cache = request.app.state.response_cache
    cache_state = cache.backend.name
    if cache.fallback_active:
        cache_state += " (fallback)"

    return HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        version=config.app_version,
        database="connected" if db_healthy else "disconnected",
        cache=cache_state,
    )
