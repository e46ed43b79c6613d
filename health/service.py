"""
Health check service for the SafeButton Tracker backend.

Liveness only says the process is up. Readiness also probes the reading
store, with a timeout, since a tracker that cannot persist readings
cannot accept them either.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from models.reading import format_instant
from storage.base import ReadingStore

logger = logging.getLogger(__name__)


@dataclass
class DependencyHealth:
    """
    Health status of a single dependency.

    Attributes:
        name: The name of the dependency (e.g., "reading_store")
        healthy: Whether the dependency is healthy and responding
        response_time_ms: The time taken to check the dependency in milliseconds
        error: Optional error message if the dependency check failed
    """
    name: str
    healthy: bool
    response_time_ms: float
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "name": self.name,
            "healthy": self.healthy,
            "response_time_ms": round(self.response_time_ms, 2),
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class HealthStatus:
    """
    Overall health status of the service.

    Attributes:
        status: "healthy" or "unhealthy"
        timestamp: When the health check was performed
        dependencies: Individual dependency statuses
    """
    status: str
    timestamp: datetime
    dependencies: list[DependencyHealth] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status,
            "timestamp": format_instant(self.timestamp),
            "dependencies": [dep.to_dict() for dep in self.dependencies],
        }


class HealthCheckService:
    """
    Service for checking the health of the tracker and its reading store.

    Attributes:
        store: The reading store to probe
        check_timeout: Timeout in seconds for the store probe
    """

    def __init__(self, store: ReadingStore, check_timeout: float = 5.0):
        self.store = store
        self.check_timeout = check_timeout

    async def check_health(self) -> dict[str, Any]:
        """Basic health check: the service is accepting requests."""
        return {"status": "ok", "timestamp": self._now()}

    async def check_liveness(self) -> dict[str, Any]:
        """Liveness check: the process is running."""
        return {"status": "alive", "timestamp": self._now()}

    async def check_readiness(self) -> HealthStatus:
        """
        Probe the reading store.

        Returns:
            HealthStatus, "unhealthy" when the store is unreachable
        """
        store_health = await self._check_store()
        return HealthStatus(
            status="healthy" if store_health.healthy else "unhealthy",
            timestamp=datetime.now(timezone.utc),
            dependencies=[store_health],
        )

    async def _check_store(self) -> DependencyHealth:
        start_time = time.perf_counter()

        try:
            reachable = await asyncio.wait_for(self.store.ping(), timeout=self.check_timeout)
            error = None if reachable else "Reading store ping returned False"
        except asyncio.TimeoutError:
            reachable = False
            error = f"Reading store health check timed out after {self.check_timeout} seconds"
        except Exception as e:
            reachable = False
            error = f"Reading store health check failed: {e}"

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        if error:
            logger.warning(error, extra={"extra_data": {"response_time_ms": elapsed_ms}})

        return DependencyHealth(
            name="reading_store",
            healthy=reachable,
            response_time_ms=elapsed_ms,
            error=error,
        )

    @staticmethod
    def _now() -> str:
        return format_instant(datetime.now(timezone.utc))
