"""
Reading store module.

Provides the append-only ReadingStore interface and its in-memory and
Elasticsearch implementations.
"""

from storage.base import (
    DEFAULT_RECENT_LIMIT,
    MAX_RECENT_LIMIT,
    MonotonicClock,
    ReadingStore,
)
from storage.elasticsearch_store import ElasticsearchReadingStore
from storage.factory import create_reading_store
from storage.memory import InMemoryReadingStore

__all__ = [
    "DEFAULT_RECENT_LIMIT",
    "MAX_RECENT_LIMIT",
    "MonotonicClock",
    "ReadingStore",
    "InMemoryReadingStore",
    "ElasticsearchReadingStore",
    "create_reading_store",
]
