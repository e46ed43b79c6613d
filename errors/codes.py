"""
Error code catalog for the SafeButton Tracker backend.

This module defines all error codes used throughout the application,
covering rejected location reports, storage failures and internal errors.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used in the application.
    
    Each error code maps to a specific HTTP status code and error category:
    - Validation errors (4xx): Client payload issues, no side effects
    - Storage errors (5xx): Reading store unreachable or failing
    - Internal errors (5xx): Server-side issues
    """
    
    # Validation errors (4xx)
    INVALID_COORDINATES = "INVALID_COORDINATES"
    """Latitude/longitude missing, non-numeric or non-finite (HTTP 400)"""
    
    INVALID_FIELD = "INVALID_FIELD"
    """An optional field has a structured (object/array) value (HTTP 400)"""
    
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    """Request body is not a JSON object (HTTP 400)"""
    
    RATE_LIMITED = "RATE_LIMITED"
    """Too many requests (HTTP 429)"""
    
    # Storage errors (5xx)
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    """Reading store unreachable or the write failed (HTTP 503)"""
    
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    """Circuit breaker in front of the reading store is open (HTTP 503)"""
    
    # Internal errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


# Mapping of error codes to their default HTTP status codes
ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.INVALID_COORDINATES: 400,
    ErrorCode.INVALID_FIELD: 400,
    ErrorCode.INVALID_PAYLOAD: 400,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.STORAGE_UNAVAILABLE: 503,
    ErrorCode.CIRCUIT_OPEN: 503,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """
    Get the default HTTP status code for an error code.
    
    Args:
        error_code: The error code to look up
        
    Returns:
        The default HTTP status code for the error code
    """
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
