"""
Client directory endpoints (Staff).

GET /api/v1/clients               — One summary per client who booked with the org
GET /api/v1/clients/{clientEmail} — A client's summary and bookings
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth import CurrentUser, require_org_id, require_staff
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import clients as client_service

router = APIRouter()


@router.get("")
async def list_clients(
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    clients = await client_service.list_clients(store, require_org_id(user))
    return {"data": [c.to_doc() for c in clients], "total": len(clients)}


@router.get("/{clientEmail}")
async def get_client(
    clientEmail: str,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    summary, bookings = await client_service.get_client_detail(
        store, require_org_id(user), clientEmail
    )
    return {"client": summary.to_doc(), "bookings": [b.to_doc() for b in bookings]}
