"""Central exception handlers.

Every error leaves the service in the same shape::

    {"status": "error", "code": ..., "message": ..., "details": [{"message": ...}]}

with a ``stack`` field added outside production.
"""

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError

from scoopauth.core.config import get_settings
from scoopauth.core.errors import AppError
from scoopauth.services.tokens import TokenError, TokenExpiredError

logger = logging.getLogger(__name__)


def _body(
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
    exc: BaseException | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "status": "error",
        "code": code,
        "message": message,
        "details": details if details is not None else [{"message": message}],
    }
    if exc is not None and not get_settings().is_production:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def error_response(exc: AppError) -> JSONResponse:
    """Render an AppError. Also used by middleware, which runs outside the handlers."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(exc.code, exc.message, exc.details, exc),
        headers=exc.headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc)


async def token_error_handler(request: Request, exc: TokenError) -> JSONResponse:
    code = "TOKEN_EXPIRED" if isinstance(exc, TokenExpiredError) else "INVALID_TOKEN"
    message = str(exc) or "Invalid token"
    return JSONResponse(status_code=401, content=_body(code, message, exc=exc))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "message": error.get("msg", "Invalid value"),
            "field": ".".join(str(loc) for loc in error.get("loc", ()) if loc != "body"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=_body("VALIDATION_ERROR", "Validation error", details),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=409,
        content=_body("DUPLICATE_ENTRY", "A record with this value already exists"),
    )


async def redis_error_handler(request: Request, exc: RedisError) -> JSONResponse:
    logger.error(f"Cache unavailable on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content=_body("SERVICE_UNAVAILABLE", "Service temporarily unavailable", exc=exc),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=_body("INTERNAL_SERVER_ERROR", "Internal server error", exc=exc),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on ``app``."""
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(TokenError, token_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RedisError, redis_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
