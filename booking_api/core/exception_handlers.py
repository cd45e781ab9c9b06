"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain, request validation and unexpected) and return consistent JSON
responses with proper HTTP status codes and traceability.

Design:
- AppError subclasses → status from ``ERROR_STATUS`` (400, 409, 503)
- Request body validation failures → 400 with per-field messages
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing

Rate limit rejections are not errors: the gate answers 429 itself.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from booking_api.core.errors import (
    AppError,
    DuplicateBookingError,
    FieldError,
    StoreUnavailableError,
    ValidationAppError,
)
from booking_api.core.logging import get_request_id

logger = logging.getLogger(__name__)

# Checked in order; first isinstance match wins
ERROR_STATUS: tuple[tuple[type[AppError], int], ...] = (
    (ValidationAppError, 400),
    (DuplicateBookingError, 409),
    (StoreUnavailableError, 503),
)


def status_for(exc: AppError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    error_content = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        error_content["details"] = details
    return {"error": error_content}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with ``error.code``, ``error.message``,
        ``error.request_id`` and optional ``error.details``.
    """
    status_code = status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, dict(exc.details or {})),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Turn pydantic validation errors into a 400 with one entry per field."""
    fields: list[FieldError] = []
    for err in exc.errors():
        # loc starts with "body"/"query"/...; the rest is the field path
        loc = [str(part) for part in err.get("loc", ())[1:]]
        message = str(err.get("msg", "Invalid value"))
        fields.append(
            {
                "field": ".".join(loc) or "body",
                "message": message.removeprefix("Value error, "),
            }
        )

    logger.info(
        "request_validation_failed",
        extra={
            "request_path": request.url.path,
            "invalid_fields": [f["field"] for f in fields],
        },
    )

    return JSONResponse(
        status_code=400,
        content=_error_body("validation_failed", "Validation failed", {"fields": fields}),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message;
    no stack traces or exception text reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content=_error_body(
            "internal_server_error",
            "An unexpected error occurred. Please try again later.",
        ),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
