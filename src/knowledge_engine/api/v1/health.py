"""Health check endpoints."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from knowledge_engine.config import get_settings
from knowledge_engine.database.connection import check_connection
from knowledge_engine.utils.locks import create_redis_client
from knowledge_engine.utils.logging import get_logger

logger = get_logger("health")
settings = get_settings()

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """
    Health check endpoint.

    Returns basic service health status. This endpoint does not check
    external dependencies and will always return healthy if the service is running.
    """
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
    }


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check():
    """
    Readiness check endpoint.

    Checks connectivity to:
    - Database (documents, chunks and providers)
    - Redis (embedding job broker and document locks)

    Returns 503 when the database is unavailable. Redis only affects
    background embedding, so it is reported but not blocking.
    """
    logger.debug("Readiness check requested")

    checks = {"database": False, "redis": False}

    try:
        checks["database"] = await check_connection()
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")

    client = create_redis_client()
    try:
        checks["redis"] = bool(await client.ping())
    except Exception as e:
        logger.warning(f"Redis connection check failed: {e}")
    finally:
        await client.aclose()

    body = {
        "status": "ready" if checks["database"] else "not_ready",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
        "checks": checks,
    }
    if not checks["database"]:
        logger.warning(f"Readiness check failed: {checks}")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)

    if not checks["redis"]:
        logger.warning(f"Readiness check partial (non-critical): {checks}")
    return body
