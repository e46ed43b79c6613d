"""
Elasticsearch-backed reading store.

Each reading is one document in the configured index. Every call goes
through a circuit breaker so a dead cluster fails requests fast instead
of tying up the ingest endpoint for the full request timeout.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from elasticsearch import Elasticsearch

from errors.codes import ErrorCode
from errors.exceptions import StorageUnavailable
from models.reading import NewReading, StoredReading, format_instant
from resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitOpenException
from storage.base import ReadingStore

logger = logging.getLogger(__name__)


READINGS_MAPPING: Dict[str, Any] = {
    "properties": {
        "id": {"type": "keyword"},
        "device_id": {"type": "keyword"},
        "latitude": {"type": "double"},
        "longitude": {"type": "double"},
        "location": {"type": "geo_point"},
        "timestamp": {"type": "keyword"},
        "received_at": {"type": "date_nanos"},
    }
}


class ElasticsearchReadingStore(ReadingStore):
    """
    Reading store persisting to an Elasticsearch index.

    The client is synchronous; calls are run in the default executor so
    the event loop keeps serving viewers while a write is in flight.

    Attributes:
        client: The Elasticsearch client
        index: Name of the readings index
    """

    def __init__(
        self,
        client: Elasticsearch,
        index: str = "readings",
        circuit_breaker: Optional[CircuitBreaker] = None,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.client = client
        self.index = index
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            name="elasticsearch",
            config=CircuitBreakerConfig(failure_threshold=3)
        )

    @classmethod
    def from_settings(cls, settings) -> "ElasticsearchReadingStore":
        client = Elasticsearch(
            settings.elastic_endpoint,
            api_key=settings.elastic_api_key,
            verify_certs=True,
            request_timeout=settings.elastic_request_timeout,
        )
        return cls(
            client,
            index=settings.elastic_index,
            default_limit=settings.recent_default_limit,
            max_limit=settings.recent_max_limit,
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Get the circuit breaker instance for external access."""
        return self._circuit_breaker

    async def _call(self, operation: str, func, *args, **kwargs):
        """
        Run a blocking client call in the executor behind the circuit breaker.

        Raises:
            StorageUnavailable: With CIRCUIT_OPEN when the breaker rejects the
                call, STORAGE_UNAVAILABLE when the call itself fails
        """
        loop = asyncio.get_running_loop()

        async def _do_call():
            return await loop.run_in_executor(None, lambda: func(*args, **kwargs))

        try:
            return await self._circuit_breaker.execute(_do_call)
        except CircuitOpenException as e:
            time_until_retry = None
            if e.time_until_retry:
                time_until_retry = int(e.time_until_retry.total_seconds())
            raise StorageUnavailable(
                message="Reading store temporarily unavailable",
                details={
                    "circuit_name": e.circuit_name,
                    "time_until_retry_seconds": time_until_retry,
                    "operation": operation,
                },
                error_code=ErrorCode.CIRCUIT_OPEN,
            ) from e
        except Exception as e:
            logger.error(
                f"Elasticsearch {operation} failed: {e}",
                extra={"extra_data": {"operation": operation, "index": self.index}}
            )
            raise StorageUnavailable(
                message=f"Reading store operation failed: {operation}",
                details={"operation": operation, "error": str(e)},
            ) from e

    async def setup(self) -> None:
        """Create the readings index with its mapping if it does not exist."""
        exists = await self._call("indices.exists", self.client.indices.exists, index=self.index)
        if exists:
            logger.info(f"Index already exists: {self.index}")
            return
        await self._call(
            "indices.create",
            self.client.indices.create,
            index=self.index,
            mappings=READINGS_MAPPING,
        )
        logger.info(f"Created index: {self.index}")

    async def _append(self, reading: NewReading) -> StoredReading:
        stored = StoredReading(
            id=uuid.uuid4().hex,
            device_id=reading.device_id,
            latitude=reading.latitude,
            longitude=reading.longitude,
            timestamp=reading.timestamp,
            received_at=self.clock(),
        )
        document = {
            "id": stored.id,
            "device_id": stored.device_id,
            "latitude": stored.latitude,
            "longitude": stored.longitude,
            "location": {"lat": stored.latitude, "lon": stored.longitude},
            "timestamp": stored.timestamp,
            "received_at": format_instant(stored.received_at),
        }
        # op_type=create: a document is written once or not at all
        await self._call(
            "index",
            self.client.index,
            index=self.index,
            id=stored.id,
            document=document,
            op_type="create",
            refresh="wait_for",
        )
        return stored

    async def _recent(self, limit: int) -> List[StoredReading]:
        response = await self._call(
            "search",
            self.client.search,
            index=self.index,
            query={"match_all": {}},
            sort=[{"received_at": {"order": "desc"}}],
            size=limit,
        )
        hits = response.get("hits", {}).get("hits", [])
        return [self._from_source(hit["_source"]) for hit in hits]

    @staticmethod
    def _from_source(source: Dict[str, Any]) -> StoredReading:
        return StoredReading(
            id=source["id"],
            device_id=source.get("device_id"),
            latitude=source["latitude"],
            longitude=source["longitude"],
            timestamp=source.get("timestamp"),
            received_at=source["received_at"],
        )

    async def ping(self) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.client.ping)

    async def close(self) -> None:
        self.client.close()
