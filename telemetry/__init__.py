"""
Telemetry module for structured logging and observability.

This module provides:
- JSONFormatter for structured JSON log output
- TelemetryService for centralized logging, metrics and tracing
"""

from telemetry.service import (
    JSONFormatter,
    TelemetryService,
    get_telemetry_service,
    initialize_telemetry,
)

__all__ = [
    "JSONFormatter",
    "TelemetryService",
    "get_telemetry_service",
    "initialize_telemetry",
]
