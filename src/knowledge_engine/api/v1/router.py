"""API v1 router aggregation."""

from fastapi import APIRouter

from knowledge_engine.api.v1 import health, providers, search

# Create v1 API router with version prefix
router = APIRouter(
    prefix="/api/v1",
    tags=["v1"],
    responses={
        404: {"description": "Not found"},
        422: {"description": "Validation error"},
        500: {"description": "Internal server error"},
    },
)

router.include_router(health.router)
router.include_router(search.router)
router.include_router(providers.router)


@router.get(
    "/",
    summary="API Information",
    description="Get API version and status information",
    tags=["v1"],
)
async def api_info():
    """
    Get API v1 information.

    Returns:
        dict: API version and status information
    """
    return {
        "version": "v1",
        "status": "active",
        "service": "knowledge-engine",
        "endpoints": {
            "health": "/api/v1/health",
            "ready": "/api/v1/ready",
            "search": {
                "search": "/api/v1/search",
                "suggestions": "/api/v1/search/suggestions",
                "similar": "/api/v1/search/similar",
            },
            "providers": "/api/v1/providers",
        },
    }
