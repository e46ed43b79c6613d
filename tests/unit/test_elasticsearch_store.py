"""
Unit tests for the Elasticsearch reading store.

The Elasticsearch client is replaced by a MagicMock; these tests check
the requests the store makes and how client failures are reported.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from errors.codes import ErrorCode
from errors.exceptions import StorageUnavailable
from models.reading import NewReading
from resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from storage.elasticsearch_store import READINGS_MAPPING, ElasticsearchReadingStore


@pytest.fixture
def es_client() -> MagicMock:
    client = MagicMock()
    client.index.return_value = {"result": "created"}
    client.search.return_value = {"hits": {"hits": []}}
    client.ping.return_value = True
    client.indices.exists.return_value = False
    return client


@pytest.fixture
def es_store(es_client) -> ElasticsearchReadingStore:
    return ElasticsearchReadingStore(es_client, index="test-readings")


class TestSetup:

    @pytest.mark.asyncio
    async def test_creates_missing_index(self, es_store, es_client):
        await es_store.setup()

        es_client.indices.create.assert_called_once_with(
            index="test-readings", mappings=READINGS_MAPPING
        )

    @pytest.mark.asyncio
    async def test_skips_existing_index(self, es_store, es_client):
        es_client.indices.exists.return_value = True

        await es_store.setup()

        es_client.indices.create.assert_not_called()


class TestAppend:

    @pytest.mark.asyncio
    async def test_writes_document_once(self, es_store, es_client):
        stored = await es_store.append(
            NewReading(latitude=1.5, longitude=2.5, device_id="d1", timestamp="t0")
        )

        es_client.index.assert_called_once()
        kwargs = es_client.index.call_args.kwargs
        assert kwargs["index"] == "test-readings"
        assert kwargs["id"] == stored.id
        assert kwargs["op_type"] == "create"
        assert kwargs["refresh"] == "wait_for"
        document = kwargs["document"]
        assert document["device_id"] == "d1"
        assert document["location"] == {"lat": 1.5, "lon": 2.5}
        assert document["timestamp"] == "t0"
        assert document["received_at"].endswith("Z")

    @pytest.mark.asyncio
    async def test_client_error_becomes_storage_unavailable(self, es_store, es_client):
        es_client.index.side_effect = ConnectionError("connection refused")

        with pytest.raises(StorageUnavailable) as exc_info:
            await es_store.append(NewReading(latitude=1.0, longitude=2.0))

        assert exc_info.value.error_code == ErrorCode.STORAGE_UNAVAILABLE
        assert exc_info.value.details["operation"] == "index"
        assert "connection refused" in exc_info.value.details["error"]

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self, es_client):
        breaker = CircuitBreaker(
            "elasticsearch",
            config=CircuitBreakerConfig(failure_threshold=2, recovery_timeout=timedelta(seconds=30)),
        )
        store = ElasticsearchReadingStore(es_client, circuit_breaker=breaker)
        es_client.index.side_effect = ConnectionError("down")

        for _ in range(2):
            with pytest.raises(StorageUnavailable):
                await store.append(NewReading(latitude=1.0, longitude=2.0))

        assert breaker.state == CircuitState.OPEN
        es_client.index.reset_mock()

        with pytest.raises(StorageUnavailable) as exc_info:
            await store.append(NewReading(latitude=1.0, longitude=2.0))

        assert exc_info.value.error_code == ErrorCode.CIRCUIT_OPEN
        assert exc_info.value.status_code == 503
        assert exc_info.value.details["circuit_name"] == "elasticsearch"
        es_client.index.assert_not_called()


class TestRecent:

    @pytest.mark.asyncio
    async def test_queries_newest_first(self, es_store, es_client):
        es_client.search.return_value = {"hits": {"hits": [
            {"_source": {
                "id": "b", "device_id": "d1", "latitude": 3.0, "longitude": 4.0,
                "timestamp": None, "received_at": "2024-01-01T00:00:02.000000Z",
            }},
            {"_source": {
                "id": "a", "device_id": None, "latitude": 1.0, "longitude": 2.0,
                "timestamp": "t0", "received_at": "2024-01-01T00:00:01.000000Z",
            }},
        ]}}

        readings = await es_store.recent(5)

        kwargs = es_client.search.call_args.kwargs
        assert kwargs["sort"] == [{"received_at": {"order": "desc"}}]
        assert kwargs["size"] == 5
        assert [r.id for r in readings] == ["b", "a"]
        assert readings[0].to_record()["receivedAt"] == "2024-01-01T00:00:02.000000Z"
        assert readings[1].device_id is None

    @pytest.mark.asyncio
    async def test_limit_is_clamped_before_querying(self, es_store, es_client):
        await es_store.recent(1000)

        assert es_client.search.call_args.kwargs["size"] == 100

    @pytest.mark.asyncio
    async def test_zero_limit_skips_query(self, es_store, es_client):
        assert await es_store.recent(0) == []
        es_client.search.assert_not_called()


class TestPing:

    @pytest.mark.asyncio
    async def test_ping_delegates_to_client(self, es_store, es_client):
        assert await es_store.ping() is True

        es_client.ping.return_value = False
        assert await es_store.ping() is False

    @pytest.mark.asyncio
    async def test_close_closes_client(self, es_store, es_client):
        await es_store.close()

        es_client.close.assert_called_once()
