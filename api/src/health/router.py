"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse

from src.config import get_settings
from src.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - the process is up."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness probe - enrollments can be served.

    Returns 503 until the progression service is wired to the database.
    Redis is reported but optional.
    """
    settings = get_settings()
    service_ready = getattr(request.app.state, "progress_service", None) is not None

    return ORJSONResponse(
        status_code=status.HTTP_200_OK
        if service_ready
        else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if service_ready else "unavailable",
            "environment": settings.environment,
            "progress_service": service_ready,
            "distributed_locks": get_redis() is not None,
        },
    )


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
