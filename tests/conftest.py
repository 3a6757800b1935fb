import asyncio
import fakeredis
import pytest
from invmetrics.config import Settings
from invmetrics.stores.memory import InMemoryStore
from invmetrics.stores.redis_store import RedisDocumentStore
from invmetrics.stores.sql_store import SqlDocumentStore

@pytest.fixture
def test_settings():
    return Settings(store_backend="memory", source_delay_seconds=0.0, environment="test")

@pytest.fixture(params=["memory", "sql", "redis"])
def make_store(request, tmp_path):
    """Returns a coroutine function building a started store of each backend."""
    async def make():
        if request.param == "memory":
            return InMemoryStore()
        if request.param == "sql":
            store = SqlDocumentStore(f"sqlite+aiosqlite:///{tmp_path / 'docs.sqlite3'}")
        else:
            store = RedisDocumentStore(client=fakeredis.FakeAsyncRedis())
        await store.start()
        return store

    return make

def run_with_store(make, scenario):
    async def _main():
        store = await make()
        try:
            return await scenario(store)
        finally:
            await store.close()
    return asyncio.run(_main())
