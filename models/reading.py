"""
Location reading models.

A reading moves through three shapes:

- ``CandidateReading``: whatever the device sent, field by field, with
  ``None`` standing for "not in the payload".
- ``NewReading``: a validated reading with finite float coordinates,
  ready to be appended to a reading store.
- ``StoredReading``: the persisted record, carrying the store-assigned
  ``id`` and ``received_at``.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


UNKNOWN_DEVICE = "unknown"


@dataclass(frozen=True)
class CandidateReading:
    """
    A raw location report parsed out of a request payload.

    Values keep the type they arrived with. A latitude of ``0`` is a
    present value; only a key missing from the payload (or JSON null)
    becomes ``None``.
    """
    device_id: Any = None
    latitude: Any = None
    longitude: Any = None
    timestamp: Any = None


@dataclass(frozen=True)
class NewReading:
    """A validated reading that has not been persisted yet."""
    latitude: float
    longitude: float
    device_id: Optional[str] = None
    timestamp: Optional[str] = None

    @property
    def device_label(self) -> str:
        return self.device_id or UNKNOWN_DEVICE


def format_instant(value: datetime) -> str:
    """Render a UTC instant as ISO-8601 with a ``Z`` suffix."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="microseconds") + "Z"


class StoredReading(BaseModel):
    """
    A persisted location reading.

    Immutable once created. ``received_at`` is the server clock of record;
    ``timestamp`` is the device's own, opaque, timestamp string.

    Attributes:
        id: Store-assigned unique identifier
        device_id: Reporting device, None when the device did not identify itself
        latitude: Finite latitude
        longitude: Finite longitude
        timestamp: Device-supplied timestamp, None when absent
        received_at: Server-assigned creation instant (UTC)
    """

    model_config = ConfigDict(frozen=True)

    id: str
    device_id: Optional[str] = None
    latitude: float
    longitude: float
    timestamp: Optional[str] = None
    received_at: datetime

    @field_validator("received_at")
    @classmethod
    def validate_received_at(cls, v: datetime) -> datetime:
        """Normalise to an aware UTC datetime."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def device_label(self) -> str:
        return self.device_id or UNKNOWN_DEVICE

    def to_record(self) -> dict[str, Any]:
        """
        Convert to the external record layout shared by the HTTP API and
        the live-update channel.

        Returns:
            Dict with keys id, deviceId, latitude, longitude, timestamp, receivedAt
        """
        return {
            "id": self.id,
            "deviceId": self.device_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp,
            "receivedAt": format_instant(self.received_at),
        }
