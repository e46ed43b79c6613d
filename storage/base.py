"""
Reading store interface.

A reading store is append-only: readings are created by ``append`` and
read back newest-first by ``recent``. There is no update or delete.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from models.reading import NewReading, StoredReading


DEFAULT_RECENT_LIMIT = 10
MAX_RECENT_LIMIT = 100


class MonotonicClock:
    """
    UTC wall clock that never returns the same instant twice.

    If the system clock stalls or steps backwards, each call advances one
    microsecond past the previous result, so ``received_at`` follows
    append order within the process.
    """

    _STEP = timedelta(microseconds=1)

    def __init__(self, now: Optional[Callable[[], datetime]] = None):
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            current = self._now()
            if self._last is not None and current <= self._last:
                current = self._last + self._STEP
            self._last = current
            return current


class ReadingStore(ABC):
    """
    Abstract append-only store of location readings.

    Subclasses implement ``_append``, ``_recent`` and ``ping``; the limit
    defaulting and clamping of ``recent`` is shared.

    Attributes:
        default_limit: Limit used when the caller gives none
        max_limit: Upper bound applied to every requested limit
    """

    def __init__(
        self,
        default_limit: int = DEFAULT_RECENT_LIMIT,
        max_limit: int = MAX_RECENT_LIMIT,
        clock: Optional[MonotonicClock] = None
    ):
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.clock = clock or MonotonicClock()

    def clamp_limit(self, limit: Optional[int]) -> int:
        """
        Resolve a caller-supplied limit.

        ``None`` gives the default limit; anything above ``max_limit`` is
        cut to ``max_limit`` and anything below zero to zero.
        """
        if limit is None:
            limit = self.default_limit
        return max(0, min(int(limit), self.max_limit))

    async def append(self, reading: NewReading) -> StoredReading:
        """
        Persist a validated reading, assigning its id and received_at.

        Raises:
            StorageUnavailable: If the backing medium cannot be reached
        """
        return await self._append(reading)

    async def recent(self, limit: Optional[int] = None) -> List[StoredReading]:
        """
        Return up to ``limit`` most recently appended readings, newest first.

        Raises:
            StorageUnavailable: If the backing medium cannot be reached
        """
        resolved = self.clamp_limit(limit)
        if resolved == 0:
            return []
        return await self._recent(resolved)

    @abstractmethod
    async def _append(self, reading: NewReading) -> StoredReading:
        ...

    @abstractmethod
    async def _recent(self, limit: int) -> List[StoredReading]:
        ...

    @abstractmethod
    async def ping(self) -> bool:
        """Check that the backing medium is reachable."""
        ...

    async def close(self) -> None:
        """Release any connections held by the store."""
        return None
