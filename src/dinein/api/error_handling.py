from __future__ import annotations

import logging
from typing import Any, Callable, Coroutine, cast

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dinein.api.middleware.request_id import get_request_id
from dinein.application.ports.repositories import OptimisticConcurrencyError
from dinein.domain.common.errors import (
    CapacityExceededError,
    ConflictError,
    DomainError,
    EmptyCartError,
    InvalidStateError,
    NotFoundError,
    OrderingError,
    ValidationError,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Request, Exception], Coroutine[Any, Any, JSONResponse]]

# Starlette resolves handlers along the exception MRO, so subclasses listed
# here win over DomainError regardless of order.
DOMAIN_ERROR_CODES: dict[type[Exception], tuple[int, str]] = {
    NotFoundError: (404, "NOT_FOUND"),
    EmptyCartError: (409, "EMPTY_CART"),
    InvalidStateError: (409, "INVALID_STATE"),
    ConflictError: (409, "CONFLICT"),
    CapacityExceededError: (409, "CAPACITY_EXCEEDED"),
    OptimisticConcurrencyError: (409, "CONFLICT"),
    ValidationError: (400, "VALIDATION_FAILED"),
    OrderingError: (400, "ORDERING_FAILED"),
    DomainError: (400, "DOMAIN_ERROR"),
}

HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


def error_body(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "error": {"code": code, "message": message, "details": details or {}},
        "requestId": get_request_id(),
    }


def _domain_handler(status_code: int, code: str) -> Handler:
    async def handle(_: Request, exc: Exception) -> JSONResponse:
        details = getattr(exc, "details", None)
        if not isinstance(details, dict):
            details = None
        return JSONResponse(status_code=status_code, content=error_body(code, str(exc), details))

    return handle


async def _handle_http_error(_: Request, exc: Exception) -> JSONResponse:
    http_exc = cast(StarletteHTTPException, exc)
    code = HTTP_STATUS_CODES.get(http_exc.status_code, "HTTP_ERROR")
    message = str(http_exc.detail) if http_exc.detail else "request failed"
    return JSONResponse(
        status_code=http_exc.status_code,
        content=error_body(code, message),
        headers=getattr(http_exc, "headers", None),
    )


async def _handle_invalid_request(_: Request, exc: Exception) -> JSONResponse:
    errors = jsonable_encoder(cast(RequestValidationError, exc).errors())
    return JSONResponse(
        status_code=400,
        content=error_body("INVALID_REQUEST", "request validation failed", {"errors": errors}),
    )


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    # Exception text stays in the log only.
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    return JSONResponse(
        status_code=500, content=error_body("INTERNAL_ERROR", "internal server error")
    )


def register_exception_handlers(app: FastAPI) -> None:
    for exc_cls, (status_code, code) in DOMAIN_ERROR_CODES.items():
        app.add_exception_handler(exc_cls, _domain_handler(status_code, code))

    app.add_exception_handler(StarletteHTTPException, _handle_http_error)
    app.add_exception_handler(RequestValidationError, _handle_invalid_request)
    app.add_exception_handler(Exception, _handle_unexpected)
