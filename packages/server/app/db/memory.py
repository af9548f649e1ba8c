"""In-process document store for development and tests."""

from __future__ import annotations

import asyncio
import copy
from typing import Any

import structlog

from app.core.errors import DocumentConflictError, DocumentNotFoundError
from app.db.base import (
    DocumentStore,
    FindQuery,
    FindResult,
    InsertResult,
    apply_window,
    matches_selector,
    next_rev,
)

log = structlog.get_logger()


class MemoryDocumentStore(DocumentStore):
    """
    Dict-backed store with the same revision semantics as CouchDB for
    writes that carry ``_rev``. Writes without ``_rev`` replace the stored
    document, like the relational backend's upsert.

    Every call yields to the event loop once so that concurrent callers
    interleave the way they would against a remote store.
    """

    name = "memory"

    def __init__(self, db_name: str = "scheduleright") -> None:
        self.db_name = db_name
        self._docs: dict[str, dict[str, Any]] = {}

    async def find(self, query: FindQuery) -> FindResult:
        await asyncio.sleep(0)
        docs = [
            copy.deepcopy(doc)
            for doc in self._docs.values()
            if matches_selector(doc, query.selector)
        ]
        return FindResult(docs=apply_window(docs, query))

    async def insert(self, doc: dict[str, Any]) -> InsertResult:
        doc_id = doc.get("_id") or doc.get("id")
        if not doc_id:
            raise ValueError("Document requires _id")
        await asyncio.sleep(0)

        stored = self._docs.get(doc_id)
        incoming_rev = doc.get("_rev")
        if incoming_rev is not None:
            if stored is None or stored.get("_rev") != incoming_rev:
                raise DocumentConflictError(
                    "Document update conflict", details={"id": doc_id}
                )

        new_doc = copy.deepcopy(doc)
        new_doc["_id"] = doc_id
        new_doc["_rev"] = next_rev(stored.get("_rev") if stored else None)
        self._docs[doc_id] = new_doc
        return InsertResult(ok=True, id=doc_id, rev=new_doc["_rev"])

    async def get(self, doc_id: str) -> dict[str, Any]:
        await asyncio.sleep(0)
        doc = self._docs.get(doc_id)
        if doc is None:
            raise DocumentNotFoundError("Document not found", details={"id": doc_id})
        return copy.deepcopy(doc)

    async def info(self) -> dict[str, Any]:
        return {"db_name": self.db_name, "doc_count": len(self._docs), "backend": self.name}

    async def ensure_database(self) -> None:
        log.info("store.ready", backend=self.name, db_name=self.db_name)

    def clear(self) -> None:
        self._docs.clear()
