"""
Volunteer roster and shift scheduling.
"""

from __future__ import annotations

from typing import Optional

import structlog

from app.core.errors import ConflictError, DocumentNotFoundError, NotFoundError
from app.db.base import DocumentStore, FindQuery
from app.services.organizations import get_site_or_404
from scheduleright_shared.schemas.common import DocType, new_doc_id
from scheduleright_shared.schemas.volunteers import (
    Shift,
    ShiftCreate,
    Volunteer,
    VolunteerCreate,
)

log = structlog.get_logger()


async def list_volunteers(store: DocumentStore, org_id: str) -> list[Volunteer]:
    result = await store.find(
        FindQuery(selector={"type": DocType.VOLUNTEER.value, "orgId": org_id}, sort=["createdAt"])
    )
    return [Volunteer.model_validate(doc) for doc in result.docs]


async def create_volunteer(store: DocumentStore, org_id: str, req: VolunteerCreate) -> Volunteer:
    volunteer = Volunteer(
        id=new_doc_id("volunteer"),
        org_id=org_id,
        name=req.name,
        email=str(req.email).lower(),
        phone=req.phone,
        skills=req.skills,
        notes=req.notes,
    )
    result = await store.insert(volunteer.to_doc())
    volunteer.rev = result.rev
    log.info("volunteer.created", volunteer_id=volunteer.id, org_id=org_id)
    return volunteer


async def _get_typed(store: DocumentStore, doc_id: str, doc_type: DocType) -> Optional[dict]:
    try:
        doc = await store.get(doc_id)
    except DocumentNotFoundError:
        return None
    return doc if doc.get("type") == doc_type.value else None


async def list_shifts(
    store: DocumentStore, org_id: str, site_id: Optional[str] = None
) -> list[Shift]:
    selector = {"type": DocType.SHIFT.value, "orgId": org_id}
    if site_id:
        selector["siteId"] = site_id
    result = await store.find(FindQuery(selector=selector, sort=["start"]))
    return [Shift.model_validate(doc) for doc in result.docs]


async def create_shift(store: DocumentStore, org_id: str, req: ShiftCreate) -> Shift:
    await get_site_or_404(store, req.site_id, org_id)
    shift = Shift(
        id=new_doc_id("shift"),
        org_id=org_id,
        site_id=req.site_id,
        title=req.title,
        start=req.start.isoformat(),
        end=req.end.isoformat(),
        capacity=req.capacity,
        location=req.location,
        notes=req.notes,
    )
    result = await store.insert(shift.to_doc())
    shift.rev = result.rev
    log.info("shift.created", shift_id=shift.id, site_id=shift.site_id)
    return shift


async def assign_volunteer(
    store: DocumentStore, org_id: str, shift_id: str, volunteer_id: str
) -> Shift:
    shift_doc = await _get_typed(store, shift_id, DocType.SHIFT)
    if shift_doc is None or shift_doc.get("orgId") != org_id:
        raise NotFoundError("Shift not found", code="SHIFT_NOT_FOUND")
    volunteer_doc = await _get_typed(store, volunteer_id, DocType.VOLUNTEER)
    if volunteer_doc is None or volunteer_doc.get("orgId") != org_id:
        raise NotFoundError("Volunteer not found", code="VOLUNTEER_NOT_FOUND")

    shift = Shift.model_validate(shift_doc)
    if volunteer_id in shift.assigned_volunteer_ids:
        return shift
    if len(shift.assigned_volunteer_ids) >= shift.capacity:
        raise ConflictError("Shift is full", code="SHIFT_FULL")

    shift.assigned_volunteer_ids.append(volunteer_id)
    shift.touch()
    # Carries _rev: a concurrent assignment surfaces as a 409.
    result = await store.insert(shift.to_doc())
    shift.rev = result.rev
    log.info("shift.volunteer_assigned", shift_id=shift_id, volunteer_id=volunteer_id)
    return shift
