"""
Reading store selection from settings.
"""

import logging

from config.settings import Settings, StoreBackend
from storage.base import ReadingStore
from storage.elasticsearch_store import ElasticsearchReadingStore
from storage.memory import InMemoryReadingStore

logger = logging.getLogger(__name__)


def create_reading_store(settings: Settings) -> ReadingStore:
    """
    Build the reading store configured by ``settings.store_backend``.

    Args:
        settings: Application settings

    Returns:
        A ReadingStore instance (not yet set up)
    """
    if settings.store_backend == StoreBackend.ELASTICSEARCH:
        logger.info(
            "Using Elasticsearch reading store",
            extra={"extra_data": {"index": settings.elastic_index}}
        )
        return ElasticsearchReadingStore.from_settings(settings)

    logger.info("Using in-memory reading store")
    return InMemoryReadingStore(
        default_limit=settings.recent_default_limit,
        max_limit=settings.recent_max_limit,
    )
