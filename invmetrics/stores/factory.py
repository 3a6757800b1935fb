from __future__ import annotations
import logging
from invmetrics.config import Settings
from invmetrics.stores.base import RecordStore

logger = logging.getLogger(__name__)

async def open_store(settings: Settings) -> RecordStore:
    """Builds and starts the store selected by ``settings.store_backend``."""
    if settings.store_backend == "memory":
        from invmetrics.stores.memory import InMemoryStore
        store: RecordStore = InMemoryStore()
    elif settings.store_backend == "redis":
        from invmetrics.stores.redis_store import RedisDocumentStore
        store = RedisDocumentStore(settings.redis_url, prefix=settings.redis_prefix)
    elif settings.store_backend == "sql":
        from invmetrics.stores.sql_store import SqlDocumentStore
        store = SqlDocumentStore(settings.database_url)
    else:
        raise ValueError(f"unknown store backend: {settings.store_backend}")
    await store.start()
    logger.info("Opened %s document store", settings.store_backend)
    return store
