"""HTTP middleware: CORS, request IDs and request timing."""

import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from knowledge_engine.config import get_settings
from knowledge_engine.utils.logging import get_logger, log_request, set_request_id

logger = get_logger("middleware")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or mint one, and expose it to log records."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        set_request_id(request_id)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class TimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=elapsed_ms,
            query=request.url.query or None,
        )
        response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}ms"
        return response


def setup_middleware(app: FastAPI) -> None:
    """Install middleware; the last one added runs first."""
    cors = get_settings().cors
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors.origins,
        allow_credentials=False,
        allow_methods=cors.allow_methods,
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
        max_age=cors.max_age,
    )
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(TimingMiddleware)
    logger.info(f"Middleware configured: CORS origins={cors.origins}")
