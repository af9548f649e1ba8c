"""
CouchDB backend over the HTTP API.

Queries go to ``POST /{db}/_find`` (Mango). Sorting is applied here rather
than by CouchDB, because Mango only sorts on fields covered by an index
that also appears in the selector.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

import httpx
import structlog

from app.core.errors import DocumentConflictError, DocumentNotFoundError, StoreError
from app.db.base import DocumentStore, FindQuery, FindResult, InsertResult, apply_window

log = structlog.get_logger()

# Mango applies limit=25 when none is given.
FULL_SCAN_LIMIT = 10_000

INDEXES: list[list[str]] = [
    ["type", "orgId"],
    ["type", "siteId"],
    ["type", "slotId"],
    ["type", "email"],
    ["type", "clientEmail"],
    ["type", "token"],
    ["type", "status"],
    ["type", "timestamp"],
    ["type", "resourceType", "resourceId"],
]


class CouchDBDocumentStore(DocumentStore):
    name = "couchdb"

    def __init__(
        self,
        url: str,
        db_name: str,
        user: str = "",
        password: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.db_name = db_name
        auth = httpx.BasicAuth(user, password) if user else None
        self._client = httpx.AsyncClient(
            base_url=url.rstrip("/"),
            auth=auth,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._db = quote(db_name, safe="")

    def _doc_path(self, doc_id: str) -> str:
        return f"/{self._db}/{quote(doc_id, safe='')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            log.error("couchdb.request_failed", method=method, path=path, error=str(exc))
            raise StoreError("Document store unavailable") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, doc_id: Optional[str] = None) -> None:
        if response.status_code == 404:
            raise DocumentNotFoundError("Document not found", details={"id": doc_id})
        if response.status_code == 409:
            raise DocumentConflictError("Document update conflict", details={"id": doc_id})
        if response.status_code >= 400:
            log.error(
                "couchdb.error_response",
                status=response.status_code,
                body=response.text[:500],
            )
            raise StoreError(f"CouchDB responded with {response.status_code}")

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def find(self, query: FindQuery) -> FindResult:
        body: dict[str, Any] = {"selector": query.selector}
        if query.sort:
            body["limit"] = FULL_SCAN_LIMIT
        else:
            body["limit"] = query.limit if query.limit is not None else FULL_SCAN_LIMIT
            if query.skip:
                body["skip"] = query.skip

        response = await self._request("POST", f"/{self._db}/_find", json=body)
        self._raise_for_status(response)
        payload = response.json()
        if payload.get("warning"):
            log.debug("couchdb.find_warning", warning=payload["warning"])
        docs = payload.get("docs", [])

        if query.sort:
            docs = apply_window(docs, query)
        return FindResult(docs=docs)

    async def insert(self, doc: dict[str, Any]) -> InsertResult:
        doc_id = doc.get("_id") or doc.get("id")
        if not doc_id:
            raise ValueError("Document requires _id")
        body = dict(doc)
        body["_id"] = doc_id
        response = await self._request("PUT", self._doc_path(doc_id), json=body)
        self._raise_for_status(response, doc_id)
        payload = response.json()
        return InsertResult(ok=bool(payload.get("ok")), id=payload["id"], rev=payload.get("rev"))

    async def get(self, doc_id: str) -> dict[str, Any]:
        response = await self._request("GET", self._doc_path(doc_id))
        self._raise_for_status(response, doc_id)
        return response.json()

    async def info(self) -> dict[str, Any]:
        response = await self._request("GET", f"/{self._db}")
        self._raise_for_status(response)
        payload = response.json()
        return {
            "db_name": payload.get("db_name", self.db_name),
            "doc_count": payload.get("doc_count", 0),
            "backend": self.name,
        }

    async def ensure_database(self) -> None:
        response = await self._request("PUT", f"/{self._db}")
        # 412: already exists
        if response.status_code not in (201, 202, 412):
            self._raise_for_status(response)
        if response.status_code != 412:
            log.info("couchdb.database_created", db_name=self.db_name)
        await self.ensure_indexes()

    async def ensure_indexes(self) -> None:
        for fields in INDEXES:
            name = "idx-" + "-".join(fields)
            response = await self._request(
                "POST",
                f"/{self._db}/_index",
                json={"index": {"fields": fields}, "name": name, "type": "json"},
            )
            self._raise_for_status(response)
        log.info("couchdb.indexes_ready", count=len(INDEXES))

    async def close(self) -> None:
        await self._client.aclose()
