"""
Middleware components for the SafeButton Tracker backend.

This module contains FastAPI middleware for request correlation and
rate limiting of the ingest endpoint.
"""

from middleware.request_id import RequestIDMiddleware, request_id_var
from middleware.rate_limiter import (
    create_rate_limiter,
    get_client_ip,
    get_rate_limit_string,
    setup_rate_limiting,
)

__all__ = [
    "RequestIDMiddleware",
    "request_id_var",
    "create_rate_limiter",
    "get_client_ip",
    "get_rate_limit_string",
    "setup_rate_limiting",
]
