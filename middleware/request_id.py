"""
Request ID middleware for request correlation.

Each HTTP request gets an ID, taken from the ``X-Request-ID`` header when
the caller sends one and generated otherwise. The ID is exposed to error
handlers through ``request.state``, to log records through a context
variable, and to the caller through the response header.
"""

import uuid
from contextvars import ContextVar
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Read by the JSON log formatter
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to every request and its response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_var.reset(token)


def get_request_id() -> str:
    """
    Get the current request ID.

    Returns:
        The current request ID, or empty string outside a request
    """
    return request_id_var.get()
