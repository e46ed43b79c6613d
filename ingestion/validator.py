"""
Location reading validation.

``validate`` is pure: it inspects a CandidateReading and either returns
the normalised NewReading or the reason it was rejected. It does no I/O
and does not log.
"""

import math
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Optional

from models.reading import CandidateReading, NewReading


class RejectionReason(str, Enum):
    """Why a location report was not accepted."""
    INVALID_COORDINATES = "InvalidCoordinates"
    INVALID_FIELD = "InvalidField"
    INVALID_PAYLOAD = "InvalidPayload"


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of validating a candidate reading.

    Attributes:
        reading: The normalised reading, set only when ``ok``
        reason: Why the candidate was rejected, set only when not ``ok``
        message: Human-readable explanation of the rejection
        field: The payload field that caused the rejection
    """
    reading: Optional[NewReading] = None
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None
    field: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None


def _coordinate(value: Any) -> Optional[float]:
    """
    Return ``value`` as a finite float, or None if it is not one.

    Strings never count, even numeric-looking ones, and neither do
    booleans.
    """
    if value is None or isinstance(value, bool) or not isinstance(value, Real):
        return None
    try:
        number = float(value)
    except (OverflowError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _optional_text(value: Any) -> Optional[str]:
    """
    Normalise an optional text field.

    Scalars are stringified (booleans as ``true``/``false``); empty or
    blank strings become None.

    Raises:
        TypeError: If the value is structured (dict, list, ...)
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Real):
        return str(value)
    if isinstance(value, str):
        return value if value.strip() else None
    raise TypeError(type(value).__name__)


def validate(candidate: CandidateReading) -> ValidationResult:
    """
    Check a candidate reading's well-formedness.

    Latitude and longitude must both be present, numeric and finite.
    Device id and timestamp are optional; absent or empty values are
    accepted and normalised to None.

    Args:
        candidate: The parsed, unvalidated reading

    Returns:
        ValidationResult carrying either the NewReading or a RejectionReason
    """
    latitude = _coordinate(candidate.latitude)
    longitude = _coordinate(candidate.longitude)
    if latitude is None or longitude is None:
        field = "latitude" if latitude is None else "longitude"
        return ValidationResult(
            reason=RejectionReason.INVALID_COORDINATES,
            message="Invalid latitude/longitude",
            field=field,
        )

    optional = {}
    for field, value in (("deviceId", candidate.device_id), ("timestamp", candidate.timestamp)):
        try:
            optional[field] = _optional_text(value)
        except TypeError as e:
            return ValidationResult(
                reason=RejectionReason.INVALID_FIELD,
                message=f"{field} must be a string, got {e}",
                field=field,
            )

    return ValidationResult(
        reading=NewReading(
            latitude=latitude,
            longitude=longitude,
            device_id=optional["deviceId"],
            timestamp=optional["timestamp"],
        )
    )
