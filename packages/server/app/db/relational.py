"""
Relational backend: one ``documents`` table emulating a document database.

The full document lives in a JSON column. Selector keys that map to an
index column (see ``INDEXED_KEYS``) become SQL predicates; anything else is
evaluated in Python over the SQL result. Writes without ``_rev`` upsert on
the primary key; writes with ``_rev`` are conditional updates and raise
``DocumentConflictError`` when no row matched.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from sqlalchemy import and_, func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, select

from app.core.errors import DocumentConflictError, DocumentNotFoundError, StoreError
from app.db.base import (
    DocumentStore,
    FindQuery,
    FindResult,
    InsertResult,
    sort_spec,
    apply_window,
    matches_selector,
    next_rev,
)
from app.models.document import INDEXED_KEYS, StoredDocument

log = structlog.get_logger()

_SQL_OPERATORS = {"$eq", "$ne", "$in", "$gte", "$lte", "$gt", "$lt"}


def _column(key: str):
    return getattr(StoredDocument, INDEXED_KEYS[key])


def _is_pushdown_operand(op: str, operand: Any) -> bool:
    if op == "$in":
        return isinstance(operand, (list, tuple)) and all(isinstance(v, str) for v in operand)
    return isinstance(operand, str)


def _predicate(key: str, condition: Any):
    """SQL predicate for one selector entry, or None when it must run in Python."""
    if key not in INDEXED_KEYS:
        return None
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        ops = condition
    else:
        ops = {"$eq": condition}
    if not all(op in _SQL_OPERATORS and _is_pushdown_operand(op, v) for op, v in ops.items()):
        return None

    col = _column(key)
    clauses = []
    for op, operand in ops.items():
        if op == "$eq":
            clauses.append(col == operand)
        elif op == "$ne":
            # Mango: a missing field is "not equal".
            clauses.append(or_(col != operand, col.is_(None)))
        elif op == "$in":
            clauses.append(col.in_(list(operand)))
        elif op == "$gte":
            clauses.append(col >= operand)
        elif op == "$lte":
            clauses.append(col <= operand)
        elif op == "$gt":
            clauses.append(col > operand)
        elif op == "$lt":
            clauses.append(col < operand)
    return and_(*clauses)


def translate_selector(selector: dict[str, Any]) -> tuple[list[Any], dict[str, Any]]:
    """Split a selector into SQL predicates and a residual Python selector."""
    predicates = []
    residual: dict[str, Any] = {}
    for key, condition in selector.items():
        predicate = _predicate(key, condition)
        if predicate is None:
            residual[key] = condition
        else:
            predicates.append(predicate)
    return predicates, residual


class RelationalDocumentStore(DocumentStore):
    name = "mysql"

    def __init__(self, database_url: str, echo: bool = False, engine: Optional[AsyncEngine] = None):
        self._engine = engine or create_async_engine(database_url, echo=echo, pool_pre_ping=True)
        self._session_factory = sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self.db_name = self._engine.url.database or "documents"

    @property
    def dialect(self) -> str:
        return self._engine.dialect.name

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def find(self, query: FindQuery) -> FindResult:
        predicates, residual = translate_selector(query.selector)
        order = sort_spec(query.sort)
        sql_window = not residual and all(key in INDEXED_KEYS for key, _ in order)

        stmt = select(StoredDocument)
        if predicates:
            stmt = stmt.where(*predicates)
        if sql_window:
            for key, descending in order:
                col = _column(key)
                # NULLs last in both directions, matching sort_docs.
                stmt = stmt.order_by(col.is_(None), col.desc() if descending else col.asc())
            if query.skip:
                stmt = stmt.offset(query.skip)
            if query.limit is not None:
                stmt = stmt.limit(query.limit)

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = list(result.scalars().all())
        except SQLAlchemyError as exc:
            log.error("relational.find_failed", error=str(exc))
            raise StoreError("Document store unavailable") from exc

        docs = [self._to_doc(row) for row in rows]
        if sql_window:
            return FindResult(docs=docs)
        docs = [doc for doc in docs if matches_selector(doc, residual)]
        return FindResult(docs=apply_window(docs, query))

    async def insert(self, doc: dict[str, Any]) -> InsertResult:
        doc_id = doc.get("_id") or doc.get("id")
        if not doc_id:
            raise ValueError("Document requires _id")
        incoming_rev = doc.get("_rev")

        try:
            async with self._session_factory() as session:
                if incoming_rev is not None:
                    rev = next_rev(incoming_rev)
                    values = self._row_values(doc, doc_id, rev)
                    result = await session.execute(
                        update(StoredDocument.__table__)
                        .where(
                            StoredDocument.__table__.c.id == doc_id,
                            StoredDocument.__table__.c.rev == incoming_rev,
                        )
                        .values(**values)
                    )
                    if result.rowcount == 0:
                        await session.rollback()
                        raise DocumentConflictError(
                            "Document update conflict", details={"id": doc_id}
                        )
                else:
                    current = await session.execute(
                        select(StoredDocument.rev).where(StoredDocument.id == doc_id)
                    )
                    rev = next_rev(current.scalar_one_or_none())
                    values = self._row_values(doc, doc_id, rev)
                    await session.execute(self._upsert(values))
                await session.commit()
        except SQLAlchemyError as exc:
            log.error("relational.insert_failed", id=doc_id, error=str(exc))
            raise StoreError("Document store unavailable") from exc

        return InsertResult(ok=True, id=doc_id, rev=rev)

    async def get(self, doc_id: str) -> dict[str, Any]:
        try:
            async with self._session_factory() as session:
                row = await session.get(StoredDocument, doc_id)
        except SQLAlchemyError as exc:
            log.error("relational.get_failed", id=doc_id, error=str(exc))
            raise StoreError("Document store unavailable") from exc
        if row is None:
            raise DocumentNotFoundError("Document not found", details={"id": doc_id})
        return self._to_doc(row)

    async def info(self) -> dict[str, Any]:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(StoredDocument))
            count = result.scalar_one()
        return {"db_name": self.db_name, "doc_count": count, "backend": self.name}

    async def ensure_database(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all, tables=[StoredDocument.__table__])
        log.info("relational.table_ready", table=StoredDocument.__tablename__, dialect=self.dialect)

    async def close(self) -> None:
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _to_doc(row: StoredDocument) -> dict[str, Any]:
        doc = dict(row.data)
        doc["_id"] = row.id
        doc["_rev"] = row.rev
        return doc

    @staticmethod
    def _row_values(doc: dict[str, Any], doc_id: str, rev: str) -> dict[str, Any]:
        data = dict(doc)
        data["_id"] = doc_id
        data.pop("_rev", None)
        values = {"id": doc_id, "rev": rev, "data": data}
        values.update(StoredDocument.columns_for(data))
        return values

    def _upsert(self, values: dict[str, Any]):
        table = StoredDocument.__table__
        changed = {k: v for k, v in values.items() if k != "id"}
        if self.dialect == "mysql":
            from sqlalchemy.dialects.mysql import insert as mysql_insert

            stmt = mysql_insert(table).values(**values)
            return stmt.on_duplicate_key_update(**changed)
        if self.dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as pg_insert

            stmt = pg_insert(table).values(**values)
            return stmt.on_conflict_do_update(index_elements=["id"], set_=changed)
        if self.dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as sqlite_insert

            stmt = sqlite_insert(table).values(**values)
            return stmt.on_conflict_do_update(index_elements=["id"], set_=changed)
        raise StoreError(f"Unsupported SQL dialect for documents: {self.dialect}")
