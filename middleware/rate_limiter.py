"""
Rate limiting for the ingest endpoint.

A misbehaving or looping device can report far faster than anyone can
watch. Limiting reports per client IP with slowapi keeps such bursts
from flooding the reading store and the live viewers.
"""

import json
import logging

from fastapi import FastAPI, Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.

    Forwarding headers set by a reverse proxy take precedence over the
    direct peer address.

    Args:
        request: The incoming FastAPI request

    Returns:
        The client's IP address as a string
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Leftmost entry is the original client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def create_rate_limiter(enabled: bool = True) -> Limiter:
    """
    Create a limiter keyed on client IP with in-memory counters.

    Args:
        enabled: When False, decorated endpoints are not limited

    Returns:
        Configured Limiter instance
    """
    return Limiter(key_func=get_client_ip, enabled=enabled)


def get_rate_limit_string(requests_per_minute: int) -> str:
    """
    Generate a rate limit string for slowapi.

    Args:
        requests_per_minute: Number of requests allowed per minute

    Returns:
        Rate limit string in slowapi format (e.g., "600/minute")
    """
    return f"{requests_per_minute}/minute"


def setup_rate_limiting(app: FastAPI, limiter: Limiter) -> None:
    """
    Attach a limiter to the app and register the 429 handler.

    Args:
        app: The FastAPI application instance
        limiter: The limiter whose decorators guard the app's endpoints
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    logger.info(
        "Rate limiting configured",
        extra={"extra_data": {"enabled": limiter.enabled}}
    )


async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Answer a rate-limited request with the application's error format.

    Args:
        request: The request that exceeded the rate limit
        exc: The RateLimitExceeded exception

    Returns:
        JSON response with 429 status code
    """
    request_id = getattr(request.state, "request_id", "unknown")
    retry_after = 60

    response_body = {
        "error_code": "RATE_LIMITED",
        "message": "Too many requests. Please slow down.",
        "details": {
            "limit": str(exc.detail),
            "retry_after_seconds": retry_after
        },
        "request_id": request_id
    }

    logger.warning(
        f"Rate limit exceeded for IP {get_client_ip(request)}",
        extra={"extra_data": {
            "path": request.url.path,
            "method": request.method
        }}
    )

    return Response(
        content=json.dumps(response_body),
        status_code=429,
        media_type="application/json",
        headers={
            "Retry-After": str(retry_after),
            "X-Request-ID": request_id
        }
    )
