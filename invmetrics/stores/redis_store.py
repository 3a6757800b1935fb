from __future__ import annotations
from typing import Any, Iterable, List, Mapping, Optional, Tuple
from datetime import datetime
import orjson
import redis.asyncio as redis
from redis.exceptions import RedisError
from invmetrics.dates import to_epoch_ms
from invmetrics.errors import StoreError
from invmetrics.stores.base import (
    Collection, Document, RecordStore, matches, require_instant_field, validate_batch,
)

class RedisDocumentStore(RecordStore):
    """One hash per document plus a sorted-set index per collection.

    HSET merges field by field, which gives upserts their merge semantics.
    Batches are queued in a MULTI/EXEC pipeline and validated up front.
    """

    def __init__(self, url: Optional[str] = None, prefix: str = "invm", client: Optional[redis.Redis] = None):
        self.r = client if client is not None else redis.Redis.from_url(url)
        self.prefix = prefix

    def _doc_key(self, collection: Collection, key: str) -> str:
        return f"{self.prefix}:{collection.name}:doc:{key}"

    def _index_key(self, collection: Collection) -> str:
        return f"{self.prefix}:{collection.name}:idx"

    @staticmethod
    def _decode(raw) -> Document:
        return {k.decode("utf-8") if isinstance(k, bytes) else k: orjson.loads(v) for k, v in raw.items()}

    async def close(self) -> None:
        await self.r.aclose()

    async def upsert_many(self, collection: Collection, items: Iterable[Tuple[str, Mapping[str, Any]]]) -> int:
        staged = validate_batch(collection, items)
        if not staged:
            return 0
        try:
            async with self.r.pipeline(transaction=True) as pipe:
                for key, doc, ts in staged:
                    if doc:
                        pipe.hset(self._doc_key(collection, key), mapping={k: orjson.dumps(v) for k, v in doc.items()})
                    if ts is not None:
                        pipe.zadd(self._index_key(collection), {key: ts})
                await pipe.execute()
        except RedisError as e:
            raise StoreError(f"failed to commit batch to collection {collection.name}", collection.name) from e
        return len(staged)

    async def get(self, collection: Collection, key: str) -> Optional[Document]:
        try:
            raw = await self.r.hgetall(self._doc_key(collection, key))
        except RedisError as e:
            raise StoreError(f"failed to read {key} from collection {collection.name}", collection.name) from e
        return self._decode(raw) if raw else None

    async def query_range(self, collection: Collection, filters: Mapping[str, Any],
                          lower: datetime, upper: datetime) -> List[Document]:
        require_instant_field(collection)
        try:
            keys = await self.r.zrangebyscore(self._index_key(collection), to_epoch_ms(lower), f"({to_epoch_ms(upper)}")
            if not keys:
                return []
            async with self.r.pipeline(transaction=False) as pipe:
                for k in keys:
                    pipe.hgetall(self._doc_key(collection, k.decode("utf-8") if isinstance(k, bytes) else k))
                raws = await pipe.execute()
        except RedisError as e:
            raise StoreError(f"failed to query collection {collection.name}", collection.name) from e
        docs = [self._decode(raw) for raw in raws if raw]
        return [d for d in docs if matches(d, filters)]
