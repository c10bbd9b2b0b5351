"""Global exception handlers for standardized error responses.

Catches AppError, HTTPException, RequestValidationError, and unhandled
exceptions to return consistent JSON error format with request correlation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from learnhub.middleware.error_codes import ErrorCode, get_error_code
from learnhub.services.exceptions import AppError, UpstreamError

logger = logging.getLogger("learnhub.exception")


def build_error_response(
    request: Request,
    status_code: int,
    code: ErrorCode,
    message: str,
    details: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
    extra: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build standardized error response."""
    request_id = getattr(request.state, "request_id", None)

    body: dict[str, Any] = {
        "success": False,
        "error": {
            "code": code.value,
            "message": message,
            "request_id": request_id,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if details:
        body["error"]["details"] = details
    if extra:
        body["error"].update(extra)

    return JSONResponse(status_code=status_code, content=body, headers=headers)


def validation_details(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Flatten pydantic errors into field-level details, dropping the body/query prefix."""
    details = []
    for error in errors:
        loc = [str(x) for x in error.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header", "form"):
            loc = loc[1:]
        details.append(
            {
                "field": ".".join(loc),
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "value_error"),
            }
        )
    return details


def validation_message(details: list[dict[str, Any]]) -> str:
    if not details:
        return "Validation error"
    first = details[0]
    if first["field"]:
        return f"Validation error: {first['field']}: {first['message']}"
    return f"Validation error: {first['message']}"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain errors raised by services and dependencies."""
    extra = None
    if isinstance(exc, UpstreamError):
        extra = {"retryable": exc.retryable}
        logger.warning(
            "Upstream error status=%s message=%s request_id=%s",
            exc.status_code,
            exc.message,
            getattr(request.state, "request_id", None),
        )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return build_error_response(
        request=request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
        headers=headers,
        extra=extra,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with standardized format."""
    error_code = get_error_code(exc.status_code)

    # Log server errors
    if exc.status_code >= 500:
        logger.error(
            "HTTPException status=%s detail=%s request_id=%s",
            exc.status_code,
            exc.detail,
            getattr(request.state, "request_id", None),
        )

    return build_error_response(
        request=request,
        status_code=exc.status_code,
        code=error_code,
        message=str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError | ValidationError
) -> JSONResponse:
    """Handle request validation errors as 400 with field-level details."""
    details = validation_details(list(exc.errors()))
    return build_error_response(
        request=request,
        status_code=400,
        code=ErrorCode.VALIDATION_ERROR,
        message=validation_message(details),
        details=details,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions - returns 500 with minimal info."""
    request_id = getattr(request.state, "request_id", None)

    # Log full exception for debugging
    logger.exception(
        "Unhandled exception request_id=%s path=%s",
        request_id,
        request.url.path,
    )

    return build_error_response(
        request=request,
        status_code=500,
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
    )
