"""
Booking endpoints.

POST /api/v1/sites/{siteId}/bookings       — Book a slot
GET  /api/v1/sites/{siteId}/bookings       — Site bookings, optional ?status (Staff)
GET  /api/v1/bookings/me                   — The caller's own bookings
GET  /api/v1/bookings/{bookingId}          — One booking (Staff or owner)
PUT  /api/v1/bookings/{bookingId}/confirm  — pending → confirmed (Staff)
PUT  /api/v1/bookings/{bookingId}/cancel   — Cancel, releasing capacity (Staff or owner)
PUT  /api/v1/bookings/{bookingId}/complete — Mark completed (Staff)
PUT  /api/v1/bookings/{bookingId}/no-show  — Mark no-show (Staff)
PUT  /api/v1/bookings/{bookingId}/notes    — Replace staff notes (Staff)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Request

from app.api.responses import listing
from app.core.auth import CurrentUser, require_auth, require_org_id, require_staff
from app.core.errors import ForbiddenError
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import bookings as booking_service
from app.services.audit import record_audit_event
from app.services.availability import get_slot_or_404
from app.services.organizations import get_site_or_404
from scheduleright_shared.schemas.audit import AuditActions
from scheduleright_shared.schemas.bookings import (
    Booking,
    BookingCreateRequest,
    BookingStatus,
    CancelRequest,
    StaffNotesRequest,
)

site_router = APIRouter()
router = APIRouter()


def _is_owner(user: CurrentUser, booking: Booking) -> bool:
    if booking.client_id and booking.client_id == user.user_id:
        return True
    return bool(user.email) and booking.client_email == user.email.lower()


async def _load_for_staff(store: DocumentStore, user: CurrentUser, booking_id: str) -> Booking:
    return await booking_service.get_booking_or_404(store, booking_id, require_org_id(user))


async def _load_for_staff_or_owner(
    store: DocumentStore, user: CurrentUser, booking_id: str
) -> Booking:
    booking = await booking_service.get_booking_or_404(store, booking_id)
    if user.is_staff and booking.org_id == user.org_id:
        return booking
    if _is_owner(user, booking):
        return booking
    raise ForbiddenError("You do not have access to this booking")


# ---------------------------------------------------------------------------
# Site-scoped
# ---------------------------------------------------------------------------


@site_router.post("", status_code=201)
async def create_booking(
    siteId: str,
    body: BookingCreateRequest,
    request: Request,
    user: CurrentUser = Depends(require_auth),
    store: DocumentStore = Depends(get_store),
):
    """Book one unit of a slot's capacity. 409 SLOT_UNAVAILABLE when it is full."""
    org_id = require_org_id(user)
    await get_site_or_404(store, siteId, org_id)
    slot = await get_slot_or_404(store, body.slot_id, org_id)
    booking = await booking_service.create_booking(
        store,
        org_id,
        siteId,
        body.slot_id,
        body,
        slot,
        booking_date=body.date,
        client_id=user.user_id,
    )
    await record_audit_event(
        store,
        action=AuditActions.BOOKING_CREATE,
        user_id=user.user_id,
        org_id=org_id,
        resource_type="booking",
        resource_id=booking.id,
        details={"slotId": booking.slot_id, "siteId": siteId},
        request=request,
    )
    return booking.to_doc()


@site_router.get("")
async def list_site_bookings(
    siteId: str,
    status: Optional[BookingStatus] = None,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    await get_site_or_404(store, siteId, require_org_id(user))
    bookings = await booking_service.get_bookings_for_site(store, siteId, status)
    return listing(bookings)


# ---------------------------------------------------------------------------
# Booking-scoped
# ---------------------------------------------------------------------------


@router.get("/me")
async def list_my_bookings(
    user: CurrentUser = Depends(require_auth),
    store: DocumentStore = Depends(get_store),
):
    bookings = await booking_service.get_bookings_for_client(store, user.email)
    return listing(bookings)


@router.get("/{bookingId}")
async def get_booking(
    bookingId: str,
    user: CurrentUser = Depends(require_auth),
    store: DocumentStore = Depends(get_store),
):
    booking = await _load_for_staff_or_owner(store, user, bookingId)
    return booking.to_doc()


async def _audit(
    store: DocumentStore,
    request: Request,
    user: CurrentUser,
    action: str,
    booking: Booking,
    details: Optional[dict] = None,
) -> None:
    await record_audit_event(
        store,
        action=action,
        user_id=user.user_id,
        org_id=booking.org_id,
        resource_type="booking",
        resource_id=booking.id,
        details=details,
        request=request,
    )


@router.put("/{bookingId}/confirm")
async def confirm_booking(
    bookingId: str,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    booking = await _load_for_staff(store, user, bookingId)
    booking = await booking_service.confirm_booking(store, booking)
    await _audit(store, request, user, AuditActions.BOOKING_CONFIRM, booking)
    return booking.to_doc()


@router.put("/{bookingId}/cancel")
async def cancel_booking(
    bookingId: str,
    request: Request,
    body: Optional[CancelRequest] = Body(None),
    user: CurrentUser = Depends(require_auth),
    store: DocumentStore = Depends(get_store),
):
    """Cancel a pending or confirmed booking; its slot capacity is released."""
    booking = await _load_for_staff_or_owner(store, user, bookingId)
    reason = body.reason if body else None
    booking = await booking_service.cancel_booking(store, booking, reason)
    await _audit(
        store, request, user, AuditActions.BOOKING_CANCEL, booking, {"reason": reason}
    )
    return booking.to_doc()


@router.put("/{bookingId}/complete")
async def complete_booking(
    bookingId: str,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    booking = await _load_for_staff(store, user, bookingId)
    booking = await booking_service.complete_booking(store, booking)
    await _audit(store, request, user, AuditActions.BOOKING_COMPLETE, booking)
    return booking.to_doc()


@router.put("/{bookingId}/no-show")
async def mark_no_show(
    bookingId: str,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    booking = await _load_for_staff(store, user, bookingId)
    booking = await booking_service.mark_no_show(store, booking)
    await _audit(store, request, user, AuditActions.BOOKING_NO_SHOW, booking)
    return booking.to_doc()


@router.put("/{bookingId}/notes")
async def update_staff_notes(
    bookingId: str,
    body: StaffNotesRequest,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    booking = await _load_for_staff(store, user, bookingId)
    booking = await booking_service.update_staff_notes(store, booking, body.notes)
    await _audit(store, request, user, AuditActions.BOOKING_NOTES, booking)
    return booking.to_doc()
