"""
Availability slot endpoints, scoped to a site.

POST   /api/v1/sites/{siteId}/availability            — Create a slot (Staff)
GET    /api/v1/sites/{siteId}/availability            — Active slots
GET    /api/v1/sites/{siteId}/availability/available  — Bookable slots in a date range
GET    /api/v1/sites/{siteId}/availability/{slotId}   — One slot
DELETE /api/v1/sites/{siteId}/availability/{slotId}   — Deactivate a slot (Staff)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from app.api.responses import listing
from app.core.auth import CurrentUser, require_auth, require_org_id, require_staff
from app.core.errors import NotFoundError, ValidationError
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import availability as availability_service
from app.services.audit import record_audit_event
from app.services.organizations import get_site_or_404
from scheduleright_shared.schemas.audit import AuditActions
from scheduleright_shared.schemas.availability import SlotCreateRequest

router = APIRouter()


@router.post("", status_code=201)
async def create_slot(
    siteId: str,
    body: SlotCreateRequest,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    org_id = require_org_id(user)
    if body.site_id and body.site_id != siteId:
        raise ValidationError("siteId in body does not match the URL", code="SITE_MISMATCH")
    slot = await availability_service.create_slot(
        store, org_id, body.model_copy(update={"site_id": siteId})
    )
    await record_audit_event(
        store,
        action=AuditActions.AVAILABILITY_CREATE,
        user_id=user.user_id,
        org_id=org_id,
        resource_type="availability",
        resource_id=slot.id,
        details={"siteId": siteId, "capacity": slot.capacity},
        request=request,
    )
    return slot.to_doc()


@router.get("")
async def list_slots(
    siteId: str,
    user: CurrentUser = Depends(require_auth),
    store: DocumentStore = Depends(get_store),
):
    await get_site_or_404(store, siteId, require_org_id(user))
    slots = await availability_service.get_slots_for_site(store, siteId)
    return listing(slots)


@router.get("/available")
async def list_available_slots(
    siteId: str,
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    user: CurrentUser = Depends(require_auth),
    store: DocumentStore = Depends(get_store),
):
    """Slots in ``[startDate, endDate]`` that still have capacity."""
    await get_site_or_404(store, siteId, require_org_id(user))
    slots = await availability_service.get_slots_for_date_range(
        store, siteId, start_date, end_date
    )
    return listing(s for s in slots if availability_service.is_slot_available(s))


@router.get("/{slotId}")
async def get_slot(
    siteId: str,
    slotId: str,
    user: CurrentUser = Depends(require_auth),
    store: DocumentStore = Depends(get_store),
):
    slot = await availability_service.get_slot_or_404(store, slotId, require_org_id(user))
    if slot.site_id != siteId:
        raise NotFoundError("Availability slot not found", code="SLOT_NOT_FOUND")
    return slot.to_doc()


@router.delete("/{slotId}")
async def deactivate_slot(
    siteId: str,
    slotId: str,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    """Soft delete: the slot becomes inactive; existing bookings stay."""
    org_id = require_org_id(user)
    slot = await availability_service.get_slot_or_404(store, slotId, org_id)
    if slot.site_id != siteId:
        raise NotFoundError("Availability slot not found", code="SLOT_NOT_FOUND")
    slot = await availability_service.deactivate_slot(store, slotId, org_id)
    await record_audit_event(
        store,
        action=AuditActions.AVAILABILITY_DEACTIVATE,
        user_id=user.user_id,
        org_id=org_id,
        resource_type="availability",
        resource_id=slotId,
        request=request,
    )
    return slot.to_doc()
