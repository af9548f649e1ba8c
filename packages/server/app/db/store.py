"""
Document store selection and the FastAPI dependency that exposes it.
"""

from __future__ import annotations

import structlog
from fastapi import Request

from app.core.config import Settings
from app.db.base import DocumentStore
from app.db.couchdb import CouchDBDocumentStore
from app.db.memory import MemoryDocumentStore
from app.db.relational import RelationalDocumentStore

log = structlog.get_logger()


def create_document_store(settings: Settings) -> DocumentStore:
    """Build the backend named by ``SR_DB_PROVIDER``."""
    provider = settings.db_provider
    log.info("store.selected", provider=provider)
    if provider == "couchdb":
        return CouchDBDocumentStore(
            url=settings.couchdb_url,
            db_name=settings.couchdb_db_name,
            user=settings.couchdb_user,
            password=settings.couchdb_password,
            timeout=settings.couchdb_timeout_seconds,
        )
    if provider == "mysql":
        return RelationalDocumentStore(settings.database_url, echo=settings.debug)
    if provider == "memory":
        return MemoryDocumentStore(db_name=settings.couchdb_db_name)
    raise ValueError(f"Unknown db provider: {provider}")


async def get_store(request: Request) -> DocumentStore:
    """FastAPI dependency for the application's document store."""
    return request.app.state.store
