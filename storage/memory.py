"""
In-process reading store.

Keeps readings in a list in append order. Used for development, tests
and single-instance deployments that can afford to lose history on restart.
"""

import asyncio
import uuid
from typing import List

from models.reading import NewReading, StoredReading
from storage.base import ReadingStore


class InMemoryReadingStore(ReadingStore):
    """Reading store backed by a Python list guarded by an asyncio lock."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._readings: List[StoredReading] = []
        self._lock = asyncio.Lock()

    async def _append(self, reading: NewReading) -> StoredReading:
        async with self._lock:
            stored = StoredReading(
                id=uuid.uuid4().hex,
                device_id=reading.device_id,
                latitude=reading.latitude,
                longitude=reading.longitude,
                timestamp=reading.timestamp,
                received_at=self.clock(),
            )
            self._readings.append(stored)
            return stored

    async def _recent(self, limit: int) -> List[StoredReading]:
        async with self._lock:
            return list(reversed(self._readings[-limit:]))

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._readings)
