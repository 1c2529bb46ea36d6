"""Health check endpoints."""

from fastapi import APIRouter, Request, Response, status

from eduaccess.config import get_settings
from eduaccess.core.database import CassandraConnection
from eduaccess.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request, response: Response) -> dict[str, str | bool]:
    """Readiness probe - 200 once the access resolver is wired, 503 before.

    Redis is reported but not required: without it decisions are not cached.
    """
    settings = get_settings()
    resolver_ready = getattr(request.app.state, "access_resolver", None) is not None
    if not resolver_ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "ready" if resolver_ready else "not_ready",
        "environment": settings.environment,
        "debug": settings.debug,
        "cassandra": CassandraConnection.is_connected(),
        "redis": get_redis() is not None,
    }


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
