"""
Shared pytest fixtures and configuration for all tests.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import pytest
from hypothesis import settings, Verbosity, Phase

from broadcast.hub import BroadcastHub
from models.reading import StoredReading
from storage.memory import InMemoryReadingStore

# Configure Hypothesis profiles for different environments
# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,
    print_blob=True,
)

# CI profile: more thorough testing for continuous integration
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Debug profile: minimal examples for quick debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
)

# Fast profile: quick smoke tests
settings.register_profile(
    "fast",
    max_examples=20,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


class RecordingViewer:
    """Viewer ``send`` callable that remembers what it was handed."""

    def __init__(self, fail_on: int = 0):
        self.received: List[StoredReading] = []
        self._fail_on = fail_on

    async def __call__(self, reading: StoredReading) -> None:
        if self._fail_on and len(self.received) + 1 >= self._fail_on:
            raise ConnectionError("viewer connection reset")
        self.received.append(reading)

    @property
    def ids(self) -> List[str]:
        return [r.id for r in self.received]


def make_stored_reading(index: int = 0, **overrides: Any) -> StoredReading:
    """Build a StoredReading without going through a store."""
    values: Dict[str, Any] = {
        "id": f"reading-{index}",
        "device_id": "button-1",
        "latitude": 1.0 + index,
        "longitude": 2.0 + index,
        "timestamp": None,
        "received_at": datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=index),
    }
    values.update(overrides)
    return StoredReading(**values)


@pytest.fixture
def memory_store() -> InMemoryReadingStore:
    """Empty in-memory reading store."""
    return InMemoryReadingStore()


@pytest.fixture
def hub() -> BroadcastHub:
    """Broadcast hub with a small per-viewer queue."""
    return BroadcastHub(queue_size=10)


@pytest.fixture
def sample_payload() -> Dict[str, Any]:
    """A well-formed location report."""
    return {
        "deviceId": "button-1",
        "latitude": 40.7128,
        "longitude": -74.006,
        "timestamp": "2024-01-01T12:00:00Z",
    }


@pytest.fixture
def make_viewer():
    """Factory for recording viewers; ``fail_on=n`` makes the n-th send raise."""
    return RecordingViewer


@pytest.fixture
def make_reading():
    """Factory for stored readings, ``make_reading(i)`` has id ``reading-i``."""
    return make_stored_reading
