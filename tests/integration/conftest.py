"""
Integration test fixtures.

Each test gets a fresh application wired to an in-memory reading store
and driven through Starlette's TestClient, lifespan included.
"""
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from config.settings import Settings
from errors.exceptions import StorageUnavailable
from main import create_app
from storage.memory import InMemoryReadingStore


class UnreachableStore(InMemoryReadingStore):
    """Store that accepts nothing and reports itself unreachable."""

    async def _append(self, reading):
        raise StorageUnavailable(details={"operation": "append"})

    async def ping(self) -> bool:
        return False


def make_settings(**overrides) -> Settings:
    values = {"rate_limit_enabled": False, "log_level": "WARNING"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def store() -> InMemoryReadingStore:
    return InMemoryReadingStore()


@pytest.fixture
def client(store) -> Iterator[TestClient]:
    app = create_app(make_settings(), store=store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def unreachable_client() -> Iterator[TestClient]:
    app = create_app(make_settings(), store=UnreachableStore())
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def rate_limited_client() -> Iterator[TestClient]:
    app = create_app(
        make_settings(rate_limit_enabled=True, rate_limit_ingest_per_minute=2),
        store=InMemoryReadingStore(),
    )
    with TestClient(app) as test_client:
        yield test_client
