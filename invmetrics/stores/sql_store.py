from __future__ import annotations
import logging
from typing import Any, Iterable, List, Mapping, Optional, Tuple
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, BigInteger, JSON, Index, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import DeclarativeBase
from invmetrics.dates import to_epoch_ms
from invmetrics.errors import StoreError
from invmetrics.stores.base import (
    Collection, Document, RecordStore, matches, require_instant_field, validate_batch,
)

logger = logging.getLogger(__name__)

_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}

class Base(DeclarativeBase):
    pass

class DocumentRow(Base):
    __tablename__ = "documents"
    collection = Column(String(80), primary_key=True)
    doc_key = Column(String(255), primary_key=True)
    body = Column(JSON, nullable=False)
    instant_ms = Column(BigInteger, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_documents_instant", "collection", "instant_ms"),
    )

class SqlDocumentStore(RecordStore):
    """Document collections in a single SQL table.

    Each batch runs in one transaction, so a failure part-way through rolls
    back every document in it.
    """

    def __init__(self, url: str):
        self.url = url
        self.engine = create_async_engine(url, pool_pre_ping=True)
        if self.engine.dialect.name not in _INSERTS:
            raise StoreError(f"unsupported SQL dialect: {self.engine.dialect.name}")

    def _insert(self):
        return _INSERTS[self.engine.dialect.name](DocumentRow)

    async def start(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to initialise document table: {e}") from e

    async def close(self) -> None:
        await self.engine.dispose()

    async def upsert_many(self, collection: Collection, items: Iterable[Tuple[str, Mapping[str, Any]]]) -> int:
        staged = validate_batch(collection, items)
        if not staged:
            return 0
        now = datetime.now(timezone.utc)
        try:
            async with self.engine.begin() as conn:
                for key, doc, ts in staged:
                    # Claim the key first; a concurrent writer that got there earlier
                    # turns this into a merge over its committed row.
                    res = await conn.execute(
                        self._insert()
                        .values(collection=collection.name, doc_key=key, body=doc, instant_ms=ts, updated_at=now)
                        .on_conflict_do_nothing(index_elements=["collection", "doc_key"])
                    )
                    if res.rowcount == 1:
                        continue
                    row = (await conn.execute(
                        select(DocumentRow.body, DocumentRow.instant_ms)
                        .where(DocumentRow.collection == collection.name)
                        .where(DocumentRow.doc_key == key)
                        .with_for_update()
                    )).one()
                    await conn.execute(
                        update(DocumentRow)
                        .where(DocumentRow.collection == collection.name)
                        .where(DocumentRow.doc_key == key)
                        .values(body={**dict(row.body), **doc},
                                instant_ms=ts if ts is not None else row.instant_ms,
                                updated_at=now)
                    )
        except SQLAlchemyError as e:
            logger.error("batch commit to %s failed: %s", collection.name, e)
            raise StoreError(f"failed to commit batch to collection {collection.name}", collection.name) from e
        return len(staged)

    async def get(self, collection: Collection, key: str) -> Optional[Document]:
        try:
            async with self.engine.connect() as conn:
                res = await conn.execute(
                    select(DocumentRow.body)
                    .where(DocumentRow.collection == collection.name)
                    .where(DocumentRow.doc_key == key)
                )
                row = res.first()
        except SQLAlchemyError as e:
            raise StoreError(f"failed to read {key} from collection {collection.name}", collection.name) from e
        return dict(row.body) if row else None

    async def query_range(self, collection: Collection, filters: Mapping[str, Any],
                          lower: datetime, upper: datetime) -> List[Document]:
        require_instant_field(collection)
        stmt = (select(DocumentRow.body)
                .where(DocumentRow.collection == collection.name)
                .where(DocumentRow.instant_ms >= to_epoch_ms(lower))
                .where(DocumentRow.instant_ms < to_epoch_ms(upper))
                .order_by(DocumentRow.instant_ms.asc(), DocumentRow.doc_key.asc()))
        for field, value in filters.items():
            if isinstance(value, str):
                stmt = stmt.where(DocumentRow.body[field].as_string() == value)
        try:
            async with self.engine.connect() as conn:
                rows = (await conn.execute(stmt)).all()
        except SQLAlchemyError as e:
            logger.error("range query on %s failed: %s", collection.name, e)
            raise StoreError(f"failed to query collection {collection.name}", collection.name) from e
        docs = [dict(r.body) for r in rows]
        return [d for d in docs if matches(d, filters)]
