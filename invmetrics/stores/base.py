from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from datetime import datetime
from invmetrics.dates import to_epoch_ms
from invmetrics.errors import StoreError

Document = Dict[str, Any]

@dataclass(frozen=True)
class Collection:
    name: str
    # Document field holding the instant used by range queries.
    instant_field: Optional[str] = None

class RecordStore(ABC):
    """Document collections with merge-upserts keyed by a natural key.

    A batch passed to ``upsert_many`` is applied atomically: either every
    document is merged or none is visible to later reads.
    """

    async def upsert_by_key(self, collection: Collection, key: str, document: Mapping[str, Any]) -> None:
        await self.upsert_many(collection, [(key, document)])

    @abstractmethod
    async def upsert_many(self, collection: Collection, items: Iterable[Tuple[str, Mapping[str, Any]]]) -> int:
        ...

    @abstractmethod
    async def get(self, collection: Collection, key: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def query_range(self, collection: Collection, filters: Mapping[str, Any],
                          lower: datetime, upper: datetime) -> List[Document]:
        """Documents matching ``filters`` whose instant lies in [lower, upper)."""

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None

def validate_batch(collection: Collection, items: Iterable[Tuple[str, Mapping[str, Any]]]) -> List[Tuple[str, Document, Optional[int]]]:
    """Checks a whole batch before any of it is written.

    Returns (key, document, instant_ms) triples; instant_ms is None when the
    collection has no instant field.
    """
    staged = []
    for key, doc in items:
        if not isinstance(key, str) or not key:
            raise StoreError(f"invalid document key {key!r} for collection {collection.name}", collection.name)
        if not isinstance(doc, Mapping):
            raise StoreError(f"document {key} in collection {collection.name} is not a mapping", collection.name)
        ts = None
        if collection.instant_field and doc.get(collection.instant_field) is not None:
            try:
                ts = to_epoch_ms(doc[collection.instant_field])
            except (TypeError, ValueError) as e:
                raise StoreError(f"document {key} has an unreadable {collection.instant_field}: {e}",
                                 collection.name) from e
        staged.append((key, dict(doc), ts))
    return staged

def require_instant_field(collection: Collection) -> str:
    if not collection.instant_field:
        raise StoreError(f"collection {collection.name} has no indexed instant field", collection.name)
    return collection.instant_field

def matches(doc: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    return all(doc.get(k) == v for k, v in filters.items())
