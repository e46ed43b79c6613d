"""
Ingestion service for location reports from the reporting device.

A report is parsed, validated, appended to the reading store and then
published to the broadcast hub. Each step gates the next:

- a rejected report touches neither the store nor the hub
- a report the store could not persist is never broadcast
- broadcasting only queues the reading for viewers, so a slow or gone
  viewer cannot slow down or fail the ingest call
- once the append has begun, cancelling the call does not stop the
  reading from being stored and published
"""

import asyncio
import logging
import time
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, Optional, Set, Union, TYPE_CHECKING

from errors.exceptions import StorageUnavailable
from ingestion.validator import RejectionReason, validate
from models.reading import CandidateReading, NewReading, StoredReading
from storage.base import ReadingStore
from telemetry.service import TelemetryService, get_telemetry_service

if TYPE_CHECKING:
    from broadcast.hub import BroadcastHub


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Accepted:
    """The reading was persisted and queued for broadcast."""
    reading: StoredReading


@dataclass(frozen=True)
class Rejected:
    """The report was malformed; nothing was stored or broadcast."""
    reason: RejectionReason
    message: str
    field: Optional[str] = None


@dataclass(frozen=True)
class Failed:
    """The reading store could not persist the reading; nothing was broadcast."""
    error: StorageUnavailable


IngestionResult = Union[Accepted, Rejected, Failed]


def parse_payload(payload: Any) -> Optional[CandidateReading]:
    """
    Pick the documented fields out of a decoded JSON payload.

    Missing keys become None; a ``0`` stays ``0``. Any other keys in the
    payload are ignored.

    Args:
        payload: The decoded request body

    Returns:
        CandidateReading, or None if the payload is not a JSON object
    """
    if not isinstance(payload, dict):
        return None
    return CandidateReading(
        device_id=payload.get("deviceId"),
        latitude=payload.get("latitude"),
        longitude=payload.get("longitude"),
        timestamp=payload.get("timestamp"),
    )


class IngestionService:
    """
    Accepts one location report at a time.

    Attributes:
        store: Reading store readings are appended to
        hub: Broadcast hub accepted readings are published to
        telemetry: Telemetry service for metrics
    """

    def __init__(
        self,
        store: ReadingStore,
        hub: "BroadcastHub",
        telemetry: Optional[TelemetryService] = None
    ):
        self.store = store
        self.hub = hub
        self.telemetry = telemetry or get_telemetry_service()
        self._commits: Set[asyncio.Task] = set()

    async def ingest(self, payload: Any) -> IngestionResult:
        """
        Validate, persist and broadcast a single location report.

        Args:
            payload: The decoded request body

        Returns:
            Accepted with the stored reading, Rejected with a reason, or
            Failed with the storage error
        """
        start = time.perf_counter()

        candidate = parse_payload(payload)
        if candidate is None:
            return Rejected(
                reason=RejectionReason.INVALID_PAYLOAD,
                message="Request body must be a JSON object",
            )

        result = validate(candidate)
        if not result.ok:
            logger.info(
                f"Rejected location report: {result.message}",
                extra={"extra_data": {"reason": result.reason.value, "field": result.field}}
            )
            return Rejected(reason=result.reason, message=result.message, field=result.field)

        reading = result.reading
        logger.info(
            f"Received location from {reading.device_label}: "
            f"{reading.latitude},{reading.longitude}"
        )

        # Once the append has started the reading is stored and published
        # even if the caller goes away
        commit = asyncio.create_task(self._commit(reading))
        self._commits.add(commit)
        commit.add_done_callback(self._commits.discard)
        outcome = await asyncio.shield(commit)
        if isinstance(outcome, Failed):
            return outcome

        duration_ms = (time.perf_counter() - start) * 1000
        if self.telemetry:
            self.telemetry.record_metric(
                "reading_ingest_duration_ms",
                duration_ms,
                tags={"device_id": outcome.reading.device_label}
            )

        return outcome

    async def _commit(self, reading: NewReading) -> Union[Accepted, Failed]:
        """Append a validated reading and publish it to the hub."""
        try:
            with self._span("reading_store.append", {"device_id": reading.device_label}):
                stored = await self.store.append(reading)
        except StorageUnavailable as e:
            logger.error(
                f"Failed to persist location from {reading.device_label}: {e.message}",
                extra={"extra_data": {"error_code": e.error_code.value, "details": e.details}}
            )
            return Failed(error=e)
        except Exception as e:
            logger.error(
                f"Failed to persist location from {reading.device_label}: {e}",
                exc_info=True
            )
            return Failed(error=StorageUnavailable(details={"error": str(e)}))

        viewers = await self.hub.publish(stored)
        logger.debug(
            f"Reading {stored.id} stored and queued for {viewers} viewers",
            extra={"extra_data": {"reading_id": stored.id, "viewers": viewers}}
        )
        return Accepted(reading=stored)

    def _span(self, name: str, attributes: dict):
        if self.telemetry:
            return self.telemetry.create_span(name, attributes)
        return nullcontext()
