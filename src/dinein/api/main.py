from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from dinein.api.error_handling import register_exception_handlers
from dinein.api.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from dinein.api.routes import billing, cart, health, menu, metrics, orders, sessions, tables
from dinein.infrastructure.observability.logging_config import configure_logging
from dinein.infrastructure.observability.otel import configure_otel

logger = logging.getLogger("dinein.api.access")

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "path", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

ROUTERS = (
    health.router,
    metrics.router,
    tables.router,
    menu.router,
    sessions.router,
    cart.router,
    orders.router,
    billing.router,
)


def _cors_allow_origins() -> list[str]:
    if os.getenv("APP_ENV", "dev").lower() in {"dev", "test"}:
        return ["*"]
    # Staging and prod only allow the configured origins.
    raw_value = os.getenv("CORS_ALLOW_ORIGINS", "")
    return [origin.strip() for origin in raw_value.split(",") if origin.strip()]


def _route_template(request: Request) -> str:
    # Label by route template so ids in the path do not explode metric cardinality.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._observe(request, 500, started, failed=True)
            raise
        self._observe(request, response.status_code, started)
        return response

    @staticmethod
    def _observe(request: Request, status_code: int, started: float, failed: bool = False) -> None:
        elapsed = time.perf_counter() - started
        template = _route_template(request)
        REQUEST_COUNT.labels(
            method=request.method, path=template, status_code=str(status_code)
        ).inc()
        REQUEST_LATENCY.labels(method=request.method, path=template).observe(elapsed)

        fields = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round(elapsed * 1000, 2),
        }
        if failed:
            logger.exception("request_error", extra=fields)
        else:
            logger.info("request_complete", extra=fields)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    logger.info("service_started")
    yield
    logger.info("service_stopped")


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Dine-in Backend", version="0.1.0", lifespan=lifespan)
    register_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    # Starlette runs the last added middleware first: CORS, request id, access log.
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_allow_origins(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    configure_otel(app)
    return app


app = create_app()
