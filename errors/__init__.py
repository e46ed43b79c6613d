"""
Error handling module for the SafeButton Tracker backend.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- AppException and StorageUnavailable exception classes
- Error response models for consistent API responses
- Exception handlers for FastAPI integration
"""

from errors.codes import ErrorCode
from errors.exceptions import AppException, StorageUnavailable
from errors.handlers import (
    ErrorResponse,
    handle_app_exception,
    handle_unexpected_exception,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "AppException",
    "StorageUnavailable",
    "ErrorResponse",
    "handle_app_exception",
    "handle_unexpected_exception",
    "register_exception_handlers",
]
