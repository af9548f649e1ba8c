"""
Public (unauthenticated) endpoints used by the embeddable booking widget.

GET  /api/public/sites/{siteId}/info          — Site name, address and timezone
GET  /api/public/sites/{siteId}/availability  — Bookable slots (?date or ?startDate&endDate, ?token)
POST /api/public/bookings                     — Book a slot as a guest
GET  /api/public/embed/{token}                — Widget configuration for a token

When a request carries an embed token, the token must be active, belong to
the site, and (if it restricts domains) match the Origin/Referer host.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.api.responses import listing
from app.core.errors import NotFoundError, ValidationError
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import availability as availability_service
from app.services import bookings as booking_service
from app.services import embeds as embed_service
from app.services.audit import record_audit_event
from app.services.organizations import get_site_or_404
from scheduleright_shared.schemas.audit import AuditActions
from scheduleright_shared.schemas.bookings import PublicBookingRequest
from scheduleright_shared.schemas.embeds import EmbedStatus, PublicEmbedConfig

router = APIRouter()

PUBLIC_USER_ID = "public"


def _request_origin(request: Request) -> Optional[str]:
    return request.headers.get("origin") or request.headers.get("referer")


async def _check_token(
    store: DocumentStore, request: Request, site_id: str, token: Optional[str]
) -> None:
    if not token:
        return
    config = await embed_service.get_by_token(store, token)
    embed_service.ensure_embed_access(config, site_id, _request_origin(request))


@router.get("/sites/{siteId}/info")
async def site_info(siteId: str, store: DocumentStore = Depends(get_store)):
    site = await get_site_or_404(store, siteId)
    return {
        "id": site.id,
        "name": site.name,
        "address": site.address,
        "phone": site.phone,
        "timezone": site.timezone,
    }


@router.get("/sites/{siteId}/availability")
async def public_availability(
    siteId: str,
    request: Request,
    date: Optional[str] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    token: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
):
    """Slots with remaining capacity for one day or a date range."""
    await get_site_or_404(store, siteId)
    await _check_token(store, request, siteId, token)

    if date:
        start_date = end_date = date
    if not start_date or not end_date:
        raise ValidationError("Provide either date or both startDate and endDate")

    slots = await availability_service.get_slots_for_date_range(
        store, siteId, start_date, end_date
    )
    return listing(s for s in slots if availability_service.is_slot_available(s))


@router.post("/bookings", status_code=201)
async def public_create_booking(
    body: PublicBookingRequest,
    request: Request,
    store: DocumentStore = Depends(get_store),
):
    """Guest booking. 409 SLOT_UNAVAILABLE when the slot is already full."""
    site = await get_site_or_404(store, body.site_id)
    await _check_token(store, request, body.site_id, body.token)

    slot = await availability_service.get_slot_or_404(store, body.slot_id)
    booking = await booking_service.create_booking(
        store,
        site.org_id,
        body.site_id,
        body.slot_id,
        body,
        slot,
        booking_date=body.date,
    )
    await record_audit_event(
        store,
        action=AuditActions.BOOKING_CREATE,
        user_id=PUBLIC_USER_ID,
        org_id=site.org_id,
        resource_type="booking",
        resource_id=booking.id,
        details={"slotId": booking.slot_id, "siteId": booking.site_id, "public": True},
        request=request,
    )
    return booking.to_doc()


@router.get("/embed/{token}", response_model=PublicEmbedConfig)
async def public_embed_config(token: str, store: DocumentStore = Depends(get_store)):
    config = await embed_service.get_by_token(store, token)
    if config is None or config.status != EmbedStatus.ACTIVE:
        raise NotFoundError("Embed configuration not found", code="EMBED_NOT_FOUND")
    return PublicEmbedConfig(
        site_id=config.site_id,
        name=config.name,
        theme_color=config.theme_color,
        button_label=config.button_label,
        locale=config.locale,
        timezone=config.timezone,
        default_service=config.default_service,
    )
