from __future__ import annotations
import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from datetime import datetime
from invmetrics.dates import to_epoch_ms
from invmetrics.stores.base import (
    Collection, Document, RecordStore, matches, require_instant_field, validate_batch,
)

class InMemoryStore(RecordStore):
    """Process-local store; used by tests and the ``memory`` backend."""

    def __init__(self):
        self.docs: Dict[str, Dict[str, Document]] = {}
        self.instants: Dict[str, Dict[str, int]] = {}
        self.commits = 0

    async def upsert_many(self, collection: Collection, items: Iterable[Tuple[str, Mapping[str, Any]]]) -> int:
        staged = validate_batch(collection, items)
        if not staged:
            return 0
        await asyncio.sleep(0)

        # No awaits below: the batch becomes visible in one step.
        docs = self.docs.setdefault(collection.name, {})
        instants = self.instants.setdefault(collection.name, {})
        for key, doc, ts in staged:
            merged = dict(docs.get(key, {}))
            merged.update(doc)
            docs[key] = merged
            if ts is not None:
                instants[key] = ts
        self.commits += 1
        return len(staged)

    async def get(self, collection: Collection, key: str) -> Optional[Document]:
        await asyncio.sleep(0)
        doc = self.docs.get(collection.name, {}).get(key)
        return dict(doc) if doc is not None else None

    async def query_range(self, collection: Collection, filters: Mapping[str, Any],
                          lower: datetime, upper: datetime) -> List[Document]:
        require_instant_field(collection)
        await asyncio.sleep(0)
        lo, hi = to_epoch_ms(lower), to_epoch_ms(upper)
        docs = self.docs.get(collection.name, {})
        out = []
        for key, ts in sorted(self.instants.get(collection.name, {}).items(), key=lambda kv: (kv[1], kv[0])):
            if lo <= ts < hi and matches(docs[key], filters):
                out.append(dict(docs[key]))
        return out
