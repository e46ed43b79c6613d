"""
Ingestion module for location reports.

This module provides the pure validator and the service that validates,
persists and broadcasts each report from the reporting device.
"""

from ingestion.service import (
    Accepted,
    Failed,
    IngestionResult,
    IngestionService,
    Rejected,
    parse_payload,
)
from ingestion.validator import RejectionReason, ValidationResult, validate

__all__ = [
    "Accepted",
    "Failed",
    "IngestionResult",
    "IngestionService",
    "Rejected",
    "parse_payload",
    "RejectionReason",
    "ValidationResult",
    "validate",
]
