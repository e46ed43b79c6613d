"""
Exception handlers for the SafeButton Tracker backend.

This module provides FastAPI exception handlers that convert exceptions
to structured JSON error responses of the form
``{"error_code", "message", "details", "request_id"}``.

Unexpected exceptions are logged with their stack trace and answered with
a generic 500 body that exposes no internal details.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from errors.codes import ErrorCode
from errors.exceptions import AppException

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """
    Structured error response model.

    All error responses from the API follow this format so that the
    reporting device and the dashboard can branch on ``error_code``.
    """
    error_code: str
    message: str
    details: Optional[dict[str, Any]] = None
    request_id: str


def get_request_id(request: Request) -> str:
    """
    Get the request ID from the request state or generate a new one.

    Args:
        request: The FastAPI request object

    Returns:
        The request ID string
    """
    if hasattr(request.state, "request_id"):
        return request.state.request_id

    return str(uuid.uuid4())


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle known application exceptions and convert to structured response.

    Client faults (4xx) are logged at WARNING, server faults such as
    StorageUnavailable (5xx) at ERROR.

    Args:
        request: The FastAPI request object
        exc: The AppException that was raised

    Returns:
        JSONResponse with structured error format
    """
    request_id = get_request_id(request)

    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{request.method} {request.url.path} failed: {exc.error_code.value}",
        extra={"extra_data": {
            "error_code": exc.error_code.value,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method,
        }}
    )

    error_response = ErrorResponse(
        error_code=exc.error_code.value,
        message=exc.message,
        details=exc.details,
        request_id=request_id,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(exclude_none=True),
        headers={"X-Request-ID": request_id},
    )


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions safely without exposing internal details.

    Args:
        request: The FastAPI request object
        exc: The unexpected exception that was raised

    Returns:
        JSONResponse with generic error message
    """
    request_id = get_request_id(request)

    logger.error(
        f"Unexpected error on {request.method} {request.url.path}",
        extra={"extra_data": {
            "error_code": ErrorCode.INTERNAL_ERROR.value,
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
        }},
        exc_info=exc,
    )

    error_response = ErrorResponse(
        error_code=ErrorCode.INTERNAL_ERROR.value,
        message="An unexpected error occurred. Please try again later.",
        details=None,
        request_id=request_id,
    )

    return JSONResponse(
        status_code=500,
        content=error_response.model_dump(exclude_none=True),
    )


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(Exception, handle_unexpected_exception)

    logger.debug("Exception handlers registered")
