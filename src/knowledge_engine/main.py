"""FastAPI application entry point.

This module creates and configures the FastAPI application instance with:
- Application metadata and OpenAPI documentation
- Middleware (CORS, RequestID, Timing)
- Exception handlers (KnowledgeEngineException, HTTPException, ValidationError, general)
- API routers (v1)
- Health check endpoints (/health, /ready)
- Startup/shutdown lifecycle management (database)
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from knowledge_engine.config import get_settings
from knowledge_engine.database import close_db, init_db
from knowledge_engine.middleware import setup_middleware
from knowledge_engine.utils.errors import KnowledgeEngineException
from knowledge_engine.utils.logging import get_logger, log_error, setup_logging

# Set up logging first
setup_logging()
logger = get_logger("main")

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Handles startup and shutdown of the database connection pool. Redis
    connections are opened on demand by the embedding tasks.
    """
    logger.info("Starting Knowledge Engine service...")
    try:
        await init_db()
        logger.info("Knowledge Engine service started successfully")
        yield
    except Exception as e:
        logger.error(f"Failed to start Knowledge Engine service: {e}", exc_info=True)
        raise
    finally:
        logger.info("Shutting down Knowledge Engine service...")
        await close_db()
        logger.info("Knowledge Engine service shut down")


app = FastAPI(
    title="Knowledge Engine",
    description="Chunking, embedding and hybrid search over knowledge base documents",
    version="0.1.0",
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    debug=settings.debug,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "search", "description": "Hybrid search, suggestions and similar questions"},
        {"name": "providers", "description": "Embedding provider administration"},
        {"name": "health", "description": "Liveness and readiness probes"},
    ],
)

setup_middleware(app)

from knowledge_engine.api.v1.router import router as v1_router

app.include_router(v1_router)


@app.exception_handler(KnowledgeEngineException)
async def knowledge_engine_exception_handler(request: Request, exc: KnowledgeEngineException) -> JSONResponse:
    """Handle service exceptions."""
    if exc.status_code >= 500:
        log_error(
            exc,
            context={
                "method": request.method,
                "path": request.url.path,
                "status_code": exc.status_code,
                "code": exc.code,
            },
        )
    else:
        logger.warning(
            f"{exc.code}: {request.method} {request.url.path}: {exc.message}",
            extra={"method": request.method, "path": request.url.path, "status_code": exc.status_code},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions (404, etc.)."""
    if exc.status_code == 404:
        logger.warning(
            f"404 Not Found: {request.method} {request.url.path}",
            extra={"method": request.method, "path": request.url.path, "status_code": 404},
        )
    else:
        log_error(
            exc,
            context={"method": request.method, "path": request.url.path, "status_code": exc.status_code},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "code": "HTTP_ERROR",
                "status_code": exc.status_code,
                "details": {},
            }
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    logger.warning(
        f"Validation error: {request.method} {request.url.path}",
        extra={"method": request.method, "path": request.url.path, "validation_errors": errors},
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation failed",
                "code": "VALIDATION_ERROR",
                "status_code": 422,
                "details": {"validation_errors": errors},
            }
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other exceptions."""
    log_error(exc, context={"method": request.method, "path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": "Internal server error",
                "code": "INTERNAL_ERROR",
                "status_code": 500,
                "details": {},
            }
        },
    )


# Root-level probes for container orchestrators; also served under /api/v1
@app.get("/health", tags=["health"], include_in_schema=False)
async def root_health_check():
    from knowledge_engine.api.v1.health import health_check

    return await health_check()


@app.get("/ready", tags=["health"], include_in_schema=False)
async def root_readiness_check():
    from knowledge_engine.api.v1.health import readiness_check

    return await readiness_check()


@app.get("/", tags=["root"])
async def root():
    return {
        "service": "knowledge-engine",
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment.value,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "knowledge_engine.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload and settings.is_development,
        log_level=settings.log_level.lower(),
    )
