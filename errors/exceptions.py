"""
Exception classes for the SafeButton Tracker backend.

This module provides the AppException class, the StorageUnavailable
condition raised by reading stores, and convenience factory functions
for the client-facing rejection errors.
"""

from typing import Any, Optional

from errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Base exception class for all application-specific errors.
    
    This exception provides structured error information including:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message
    - status_code: The HTTP status code to return
    - details: Optional additional context (e.g., the offending field)
    
    Example:
        raise AppException(
            error_code=ErrorCode.INVALID_COORDINATES,
            message="Invalid latitude/longitude",
            details={"field": "latitude", "reason": "must be a finite number"}
        )
    """
    
    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize an AppException.
        
        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            status_code: The HTTP status code (defaults to the error code's default)
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details
        super().__init__(message)
    
    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for JSON serialization.
        
        Returns:
            Dictionary containing error_code, message, and details
        """
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result
    
    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"details={self.details!r})"
        )


class StorageUnavailable(AppException):
    """
    Raised by a reading store when its backing medium cannot be reached
    or an operation against it fails.
    
    The ingestion service turns this into a ``Failed`` outcome (and never
    broadcasts); read paths let it propagate to the 503 handler.
    """
    
    def __init__(
        self,
        message: str = "Reading store unavailable",
        details: Optional[dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.STORAGE_UNAVAILABLE
    ):
        super().__init__(error_code=error_code, message=message, details=details)


# Convenience factory functions for common error types

def invalid_coordinates(
    message: str = "Invalid latitude/longitude",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an invalid coordinates exception."""
    return AppException(
        error_code=ErrorCode.INVALID_COORDINATES,
        message=message,
        details=details
    )


def invalid_field(
    message: str,
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an invalid optional field exception."""
    return AppException(
        error_code=ErrorCode.INVALID_FIELD,
        message=message,
        details=details
    )


def invalid_payload(
    message: str = "Request body must be a JSON object",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an invalid payload exception."""
    return AppException(
        error_code=ErrorCode.INVALID_PAYLOAD,
        message=message,
        details=details
    )
