"""
Availability service: bookable slots and their capacity counter.

Every write to a slot goes through ``_guarded_update``, which

- serializes writers for the same slot within this process (one
  ``asyncio.Lock`` per slot id), and
- writes with the slot's ``_rev`` so a write from another process in
  between is detected as a conflict, re-read, re-checked and retried a
  bounded number of times.

Capacity is re-validated inside that loop, immediately before each
conditional write, so ``currentBookings`` never passes ``capacity``.
"""

from __future__ import annotations

import asyncio
import weakref
from datetime import date
from typing import Callable, Optional

import structlog

from app.core.config import get_settings
from app.core.errors import (
    ConflictError,
    DocumentConflictError,
    DocumentNotFoundError,
    NotFoundError,
    SlotUnavailableError,
    ValidationError,
)
from app.db.base import DocumentStore, FindQuery
from app.services.organizations import get_site_or_404
from scheduleright_shared.schemas.availability import (
    AvailabilitySlot,
    Recurrence,
    SlotCreateRequest,
    SlotStatus,
)
from scheduleright_shared.schemas.common import DocType, new_doc_id

log = structlog.get_logger()

SLOT_LIST_LIMIT = 1000

_slot_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _slot_lock(slot_id: str) -> asyncio.Lock:
    lock = _slot_locks.get(slot_id)
    if lock is None:
        lock = asyncio.Lock()
        _slot_locks[slot_id] = lock
    return lock


def parse_hhmm(value: str) -> int:
    """'HH:MM' -> minutes after midnight."""
    try:
        hours, minutes = (int(part) for part in value.split(":"))
    except ValueError:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    return hours * 60 + minutes


def parse_date(value: str, field: str = "date") -> date:
    try:
        return date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field} '{value}', expected YYYY-MM-DD")


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------

async def create_slot(
    store: DocumentStore, org_id: str, req: SlotCreateRequest
) -> AvailabilitySlot:
    if not req.site_id:
        raise ValidationError("siteId is required")
    if parse_hhmm(req.end_time) <= parse_hhmm(req.start_time):
        raise ValidationError("End time must be after start time")
    if req.recurrence == Recurrence.WEEKLY and req.day_of_week is None:
        raise ValidationError("dayOfWeek is required for weekly slots")
    if req.recurrence == Recurrence.ONCE and req.specific_date is None:
        raise ValidationError("specificDate is required for one-time slots")
    if (
        req.recurrence_end_date is not None
        and req.specific_date is not None
        and req.recurrence_end_date < req.specific_date
    ):
        raise ValidationError("recurrenceEndDate must not be before specificDate")
    await get_site_or_404(store, req.site_id, org_id)

    slot = AvailabilitySlot(
        id=new_doc_id("slot"),
        site_id=req.site_id,
        org_id=org_id,
        day_of_week=req.day_of_week if req.day_of_week is not None else 0,
        start_time=req.start_time,
        end_time=req.end_time,
        recurrence=req.recurrence,
        recurrence_end_date=req.recurrence_end_date.isoformat() if req.recurrence_end_date else None,
        specific_date=req.specific_date.isoformat() if req.specific_date else None,
        capacity=req.capacity,
        current_bookings=0,
        duration_minutes=req.duration_minutes,
        buffer=req.buffer,
        title=req.title,
        description=req.description,
        notes_for_clients=req.notes_for_clients,
        status=SlotStatus.ACTIVE,
    )
    result = await store.insert(slot.to_doc())
    slot.rev = result.rev
    log.info("slot.created", slot_id=slot.id, site_id=slot.site_id, capacity=slot.capacity)
    return slot


async def get_slots_for_site(store: DocumentStore, site_id: str) -> list[AvailabilitySlot]:
    result = await store.find(
        FindQuery(
            selector={
                "type": DocType.AVAILABILITY.value,
                "siteId": site_id,
                "status": SlotStatus.ACTIVE.value,
            },
            limit=SLOT_LIST_LIMIT,
        )
    )
    return [AvailabilitySlot.model_validate(doc) for doc in result.docs]


async def get_slots_for_date_range(
    store: DocumentStore, site_id: str, start: str, end: str
) -> list[AvailabilitySlot]:
    """
    Active slots relevant to ``[start, end]`` (inclusive, YYYY-MM-DD).

    One-time slots are kept when their date falls in the range; recurring
    slots are always included.
    """
    start_date = parse_date(start, "startDate")
    end_date = parse_date(end, "endDate")
    if end_date < start_date:
        raise ValidationError("endDate must not be before startDate")

    slots = await get_slots_for_site(store, site_id)
    selected = []
    for slot in slots:
        if slot.recurrence == Recurrence.ONCE:
            if not slot.specific_date:
                continue
            if start_date <= parse_date(slot.specific_date) <= end_date:
                selected.append(slot)
        else:
            selected.append(slot)
    return selected


async def get_slot(store: DocumentStore, slot_id: str) -> Optional[AvailabilitySlot]:
    try:
        doc = await store.get(slot_id)
    except DocumentNotFoundError:
        return None
    if doc.get("type") != DocType.AVAILABILITY.value:
        return None
    return AvailabilitySlot.model_validate(doc)


async def get_slot_or_404(
    store: DocumentStore, slot_id: str, org_id: Optional[str] = None
) -> AvailabilitySlot:
    slot = await get_slot(store, slot_id)
    if slot is None or (org_id is not None and slot.org_id != org_id):
        raise NotFoundError("Availability slot not found", code="SLOT_NOT_FOUND")
    return slot


def is_slot_available(slot: AvailabilitySlot) -> bool:
    return slot.status == SlotStatus.ACTIVE and slot.current_bookings < slot.capacity


# ---------------------------------------------------------------------------
# Guarded writes
# ---------------------------------------------------------------------------

async def _guarded_update(
    store: DocumentStore,
    slot_id: str,
    mutate: Callable[[AvailabilitySlot], AvailabilitySlot],
    slot: Optional[AvailabilitySlot] = None,
) -> AvailabilitySlot:
    max_attempts = max(1, get_settings().booking_max_retries)
    async with _slot_lock(slot_id):
        current = slot if slot is not None and slot.rev else None
        for attempt in range(1, max_attempts + 1):
            if current is None:
                current = await get_slot_or_404(store, slot_id)
            updated = mutate(current.model_copy(deep=True))
            updated.touch()
            try:
                result = await store.insert(updated.to_doc())
            except DocumentConflictError:
                log.info("slot.write_conflict", slot_id=slot_id, attempt=attempt)
                current = None
                continue
            updated.rev = result.rev
            return updated

    log.warning("slot.write_contention", slot_id=slot_id, attempts=max_attempts)
    raise ConflictError(
        "Slot is being updated concurrently, please retry",
        code="SLOT_CONTENTION",
        details={"slotId": slot_id},
    )


async def adjust_booking_count(
    store: DocumentStore,
    slot_id: str,
    delta: int,
    slot: Optional[AvailabilitySlot] = None,
) -> AvailabilitySlot:
    """
    Add ``delta`` to ``currentBookings``.

    Increments re-check availability on the freshest copy of the slot and
    raise ``SlotUnavailableError`` when it is full or no longer active.
    Decrements never go below zero.
    """

    def mutate(current: AvailabilitySlot) -> AvailabilitySlot:
        if delta > 0:
            if not is_slot_available(current) or current.current_bookings + delta > current.capacity:
                raise SlotUnavailableError(slot_id)
            current.current_bookings += delta
        else:
            current.current_bookings = max(0, current.current_bookings + delta)
        return current

    updated = await _guarded_update(store, slot_id, mutate, slot)
    log.info(
        "slot.booking_count_adjusted",
        slot_id=slot_id,
        delta=delta,
        current_bookings=updated.current_bookings,
        capacity=updated.capacity,
    )
    return updated


async def deactivate_slot(
    store: DocumentStore, slot_id: str, org_id: Optional[str] = None
) -> AvailabilitySlot:
    """Soft delete. Existing bookings are left untouched."""
    slot = await get_slot_or_404(store, slot_id, org_id)

    def mutate(current: AvailabilitySlot) -> AvailabilitySlot:
        current.status = SlotStatus.INACTIVE
        return current

    updated = await _guarded_update(store, slot_id, mutate, slot)
    log.info("slot.deactivated", slot_id=slot_id)
    return updated
