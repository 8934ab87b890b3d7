"""FastAPI application for the Overseer decision engine."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable
from uuid import uuid4

from fastapi import FastAPI, HTTPException
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter, Histogram

from overseer.api import routes
from overseer.api.errors import to_http_exception
from overseer.app_version import get_app_version
from overseer.config import settings
from overseer.engine.service import DecisionEngine
from overseer.errors import DomainError
from overseer.observability.logging import logger, request_id_var
from overseer.storage.database import init_db

REQUEST_COUNT = Counter(
    "overseer_http_requests_total", "Total HTTP requests", ["method", "path", "status"]
)
REQUEST_LATENCY = Histogram(
    "overseer_http_request_duration_seconds",
    "HTTP request duration in seconds",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
    labelnames=["path"],
)


def _metrics_path(request: Request) -> str:
    """Return a low-cardinality path label for metrics."""
    route = request.scope.get("route")
    if route is not None:
        path = getattr(route, "path", None)
        if path:
            return str(path)
    return "unmatched"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables and restore accumulator state for active projects."""
    from overseer.observability import init_observability

    init_observability()
    logger.info("overseer_api_starting", environment=settings.environment)

    init_db()
    engine = getattr(app.state, "engine", None)
    if engine is None:
        engine = DecisionEngine()
        app.state.engine = engine
    engine.restore_active_projects()

    yield

    logger.info("overseer_api_stopping")


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Manage the X-Request-ID header and its contextvar."""
    request_id = request.headers.get("X-Request-ID") or str(uuid4())

    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)

    response.headers["X-Request-ID"] = request_id
    return response


async def timing_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    path_label = _metrics_path(request)
    REQUEST_COUNT.labels(method=request.method, path=path_label, status=response.status_code).inc()
    REQUEST_LATENCY.labels(path=path_label).observe(duration_ms / 1000.0)
    logger.info(
        "request_complete",
        path=str(request.url.path),
        method=request.method,
        status=response.status_code,
        duration_ms=round(duration_ms, 2),
    )
    response.headers["X-Response-Time-ms"] = f"{duration_ms:.2f}"
    return response


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return consistent error envelope."""
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error", "http_error")
        detail = detail.get("detail", detail)
    else:
        error_code = "http_error"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": error_code, "detail": detail},
        headers=exc.headers,
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if int(exc.status_code) >= 500:
        logger.error("domain_error", error=exc.error, detail=str(exc))
    return await http_exception_handler(request, to_http_exception(exc))


def create_app(engine: DecisionEngine | None = None) -> FastAPI:
    """Build the API app. Tests pass their own engine bound to a test database."""
    app = FastAPI(
        title="Overseer API",
        description="Adjudication and supervision decisions for planned project work",
        version=get_app_version(),
        lifespan=lifespan,
    )
    if engine is not None:
        app.state.engine = engine

    app.middleware("http")(timing_middleware)
    app.middleware("http")(request_id_middleware)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(DomainError, domain_error_handler)

    app.include_router(routes.health.router)
    app.include_router(routes.metrics.router)
    app.include_router(routes.projects.router, prefix="/v1")
    app.include_router(routes.adjudications.router, prefix="/v1")
    app.include_router(routes.events.router, prefix="/v1")
    app.include_router(routes.scope_changes.router, prefix="/v1")
    return app


app = create_app()


__all__ = ["app", "create_app"]
