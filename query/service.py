"""
Query service for recent location readings.

Serves the dashboard's history table and viewers reconnecting after a
gap in the live feed.
"""

from typing import List, Optional

from models.reading import StoredReading
from storage.base import ReadingStore


class QueryService:
    """Read-side counterpart of the ingestion service."""

    def __init__(self, store: ReadingStore):
        self.store = store

    async def list_recent(self, limit: Optional[int] = None) -> List[StoredReading]:
        """
        Return the most recently stored readings, newest first.

        Args:
            limit: Maximum number of readings; defaulted and clamped by the store

        Raises:
            StorageUnavailable: If the reading store cannot be reached
        """
        return await self.store.recent(limit)
