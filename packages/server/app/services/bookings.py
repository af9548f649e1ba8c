"""
Booking service: creation against a slot and lifecycle transitions.

Creation reserves a unit of slot capacity first (see
``availability.adjust_booking_count``) and only then writes the booking,
releasing the reservation if the booking write fails.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from app.core.errors import DocumentNotFoundError, NotFoundError, SlotUnavailableError, ValidationError
from app.db.base import DocumentStore, FindQuery
from app.services.availability import (
    adjust_booking_count,
    is_slot_available,
    parse_date,
    parse_hhmm,
)
from app.services.organizations import get_site
from scheduleright_shared.schemas.availability import AvailabilitySlot, Recurrence
from scheduleright_shared.schemas.bookings import (
    CAPACITY_HOLDING_STATUSES,
    Booking,
    BookingStatus,
    ClientInfo,
    validate_transition,
)
from scheduleright_shared.schemas.common import DocType, new_doc_id, utcnow_iso

log = structlog.get_logger()

BOOKING_LIST_LIMIT = 1000


def _sunday_based_weekday(day: date) -> int:
    return (day.weekday() + 1) % 7


def resolve_occurrence_date(slot: AvailabilitySlot, requested: Optional[date]) -> date:
    """
    The calendar date a booking against ``slot`` takes place on.

    One-time slots always use their own date. Recurring slots need the
    caller to name the occurrence, which must fit the recurrence rule.
    """
    if slot.recurrence == Recurrence.ONCE:
        if not slot.specific_date:
            raise ValidationError("One-time slot has no date")
        return parse_date(slot.specific_date)

    if requested is None:
        raise ValidationError("date is required when booking a recurring slot")
    if slot.specific_date and requested < parse_date(slot.specific_date):
        raise ValidationError("Requested date is before the slot starts")
    if slot.recurrence_end_date and requested > parse_date(slot.recurrence_end_date):
        raise ValidationError("Requested date is after the slot's recurrence ends")
    if slot.recurrence == Recurrence.WEEKLY and _sunday_based_weekday(requested) != slot.day_of_week:
        raise ValidationError("Requested date does not fall on the slot's day of week")
    if (
        slot.recurrence == Recurrence.MONTHLY
        and slot.specific_date
        and requested.day != parse_date(slot.specific_date).day
    ):
        raise ValidationError("Requested date does not match the slot's day of month")
    return requested


def site_zone(tz_name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone: {tz_name}", code="INVALID_TIMEZONE")


def booking_window(
    slot: AvailabilitySlot, occurrence: date, tz_name: Optional[str] = "UTC"
) -> tuple[str, str]:
    """UTC ISO start/end for a booking. Slot times are wall-clock times in ``tz_name``."""
    minutes = parse_hhmm(slot.start_time)
    local_start = datetime.combine(
        occurrence, time(minutes // 60, minutes % 60), tzinfo=site_zone(tz_name)
    )
    start = local_start.astimezone(timezone.utc)
    end = start + timedelta(minutes=slot.duration_minutes)
    return start.isoformat().replace("+00:00", "Z"), end.isoformat().replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

async def create_booking(
    store: DocumentStore,
    org_id: str,
    site_id: str,
    slot_id: str,
    client: ClientInfo,
    slot: AvailabilitySlot,
    *,
    booking_date: Optional[date] = None,
    client_id: Optional[str] = None,
) -> Booking:
    """Create a pending booking without ever exceeding the slot's capacity."""
    if slot.id != slot_id or slot.org_id != org_id:
        raise NotFoundError("Availability slot not found", code="SLOT_NOT_FOUND")
    if slot.site_id != site_id:
        raise ValidationError("Slot does not belong to this site", code="SITE_MISMATCH")
    if not is_slot_available(slot):
        raise SlotUnavailableError(slot_id)

    occurrence = resolve_occurrence_date(slot, booking_date)
    site = await get_site(store, site_id)
    start_time, end_time = booking_window(slot, occurrence, site.timezone if site else "UTC")

    # Authoritative capacity check and increment.
    await adjust_booking_count(store, slot_id, +1, slot=slot)

    booking = Booking(
        id=new_doc_id("booking"),
        site_id=site_id,
        org_id=org_id,
        slot_id=slot_id,
        client_id=client_id,
        client_name=client.client_name,
        client_email=str(client.client_email).lower(),
        client_phone=client.client_phone,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=slot.duration_minutes,
        status=BookingStatus.PENDING,
        notes=client.notes,
    )
    try:
        result = await store.insert(booking.to_doc())
    except Exception:
        log.error("booking.insert_failed", slot_id=slot_id, booking_id=booking.id)
        await _release_capacity(store, slot_id)
        raise

    booking.rev = result.rev
    log.info("booking.created", booking_id=booking.id, slot_id=slot_id, site_id=site_id)
    return booking


async def _release_capacity(store: DocumentStore, slot_id: str) -> None:
    try:
        await adjust_booking_count(store, slot_id, -1)
    except Exception:
        # The caller re-raises the original failure.
        log.exception("booking.capacity_release_failed", slot_id=slot_id)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

async def get_booking(store: DocumentStore, booking_id: str) -> Optional[Booking]:
    try:
        doc = await store.get(booking_id)
    except DocumentNotFoundError:
        return None
    if doc.get("type") != DocType.BOOKING.value:
        return None
    return Booking.model_validate(doc)


async def get_booking_or_404(
    store: DocumentStore, booking_id: str, org_id: Optional[str] = None
) -> Booking:
    booking = await get_booking(store, booking_id)
    if booking is None or (org_id is not None and booking.org_id != org_id):
        raise NotFoundError("Booking not found", code="BOOKING_NOT_FOUND")
    return booking


async def get_bookings_for_site(
    store: DocumentStore, site_id: str, status: Optional[BookingStatus] = None
) -> list[Booking]:
    selector: dict[str, Any] = {"type": DocType.BOOKING.value, "siteId": site_id}
    if status is not None:
        selector["status"] = status.value
    result = await store.find(
        FindQuery(selector=selector, sort=[{"startTime": "asc"}], limit=BOOKING_LIST_LIMIT)
    )
    return [Booking.model_validate(doc) for doc in result.docs]


async def get_bookings_for_client(store: DocumentStore, email: str) -> list[Booking]:
    result = await store.find(
        FindQuery(
            selector={"type": DocType.BOOKING.value, "clientEmail": email.lower()},
            sort=[{"startTime": "desc"}],
            limit=BOOKING_LIST_LIMIT,
        )
    )
    return [Booking.model_validate(doc) for doc in result.docs]


async def get_bookings_for_org(
    store: DocumentStore, org_id: str, client_email: Optional[str] = None
) -> list[Booking]:
    """Every booking in the org, newest start first; optionally one client's."""
    selector: dict[str, Any] = {"type": DocType.BOOKING.value, "orgId": org_id}
    if client_email:
        selector["clientEmail"] = client_email.strip().lower()
    result = await store.find(
        FindQuery(selector=selector, sort=[{"startTime": "desc"}], limit=BOOKING_LIST_LIMIT)
    )
    return [Booking.model_validate(doc) for doc in result.docs]


async def get_upcoming_bookings(
    store: DocumentStore, start_iso: str, end_iso: str, org_id: Optional[str] = None
) -> list[Booking]:
    """Pending or confirmed bookings starting within ``[start_iso, end_iso]``."""
    selector: dict[str, Any] = {
        "type": DocType.BOOKING.value,
        "status": {"$in": [BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value]},
        "startTime": {"$gte": start_iso, "$lte": end_iso},
    }
    if org_id:
        selector["orgId"] = org_id
    result = await store.find(FindQuery(selector=selector, sort=["startTime"]))
    return [Booking.model_validate(doc) for doc in result.docs]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

async def _save(store: DocumentStore, booking: Booking) -> Booking:
    booking.touch()
    result = await store.insert(booking.to_doc())
    booking.rev = result.rev
    return booking


def apply_transition(booking: Booking, target: BookingStatus) -> Booking:
    valid, message = validate_transition(booking.status, target)
    if not valid:
        raise ValidationError(message, code="INVALID_STATE")
    booking.status = target
    return booking


async def confirm_booking(store: DocumentStore, booking: Booking) -> Booking:
    apply_transition(booking, BookingStatus.CONFIRMED)
    booking.confirmed_at = utcnow_iso()
    await _save(store, booking)
    log.info("booking.confirmed", booking_id=booking.id)
    return booking


async def cancel_booking(
    store: DocumentStore, booking: Booking, reason: Optional[str] = None
) -> Booking:
    """Cancel and give the held unit of capacity back to the slot."""
    held_capacity = booking.status in CAPACITY_HOLDING_STATUSES
    previous = booking.model_copy()
    apply_transition(booking, BookingStatus.CANCELLED)
    booking.cancelled_at = utcnow_iso()
    booking.cancel_reason = reason
    # The revision check on this write makes a double cancel release only once.
    await _save(store, booking)
    if held_capacity:
        try:
            await adjust_booking_count(store, booking.slot_id, -1)
        except Exception:
            log.error("booking.cancel_release_failed", booking_id=booking.id, slot_id=booking.slot_id)
            await _revert_cancel(store, previous, booking.rev)
            raise
    log.info("booking.cancelled", booking_id=booking.id, slot_id=booking.slot_id)
    return booking


async def _revert_cancel(store: DocumentStore, previous: Booking, rev: Optional[str]) -> None:
    """Put a booking back in its pre-cancel state so the cancel can be retried."""
    previous.rev = rev
    try:
        await _save(store, previous)
    except Exception:
        # The caller re-raises the release failure.
        log.exception("booking.cancel_revert_failed", booking_id=previous.id)


async def complete_booking(store: DocumentStore, booking: Booking) -> Booking:
    apply_transition(booking, BookingStatus.COMPLETED)
    await _save(store, booking)
    log.info("booking.completed", booking_id=booking.id)
    return booking


async def mark_no_show(store: DocumentStore, booking: Booking) -> Booking:
    apply_transition(booking, BookingStatus.NO_SHOW)
    await _save(store, booking)
    log.info("booking.no_show", booking_id=booking.id)
    return booking


async def update_staff_notes(store: DocumentStore, booking: Booking, notes: str) -> Booking:
    booking.staff_notes = notes
    return await _save(store, booking)


async def mark_reminder_sent(store: DocumentStore, booking: Booking) -> Booking:
    booking.reminder_sent_at = utcnow_iso()
    return await _save(store, booking)
