"""
Domain models for location readings.
"""

from models.reading import (
    UNKNOWN_DEVICE,
    CandidateReading,
    NewReading,
    StoredReading,
    format_instant,
)

__all__ = [
    "UNKNOWN_DEVICE",
    "CandidateReading",
    "NewReading",
    "StoredReading",
    "format_instant",
]
