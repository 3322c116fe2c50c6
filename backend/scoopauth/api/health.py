"""Health check endpoint with database and cache connectivity checks."""

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from scoopauth.core import check_db_connection

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
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Health check endpoint.

    Returns 503 if either the database or the cache is unreachable.
    """
    state = request.app.state
    db_healthy = await check_db_connection(state.session_maker)
    cache_healthy = await state.cache.ping()

    # Set appropriate status code for container orchestration
    healthy = db_healthy and cache_healthy
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=state.settings.app_version,
        database="connected" if db_healthy else "disconnected",
        cache="connected" if cache_healthy else "disconnected",
    )
