"""
Volunteer and shift endpoints (Staff).

GET  /api/v1/volunteers              — List volunteers
POST /api/v1/volunteers              — Add a volunteer
GET  /api/v1/shifts                  — List shifts, optional ?siteId
POST /api/v1/shifts                  — Create a shift
POST /api/v1/shifts/{shiftId}/assign — Assign a volunteer (409 SHIFT_FULL)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.api.responses import listing
from app.core.auth import CurrentUser, require_org_id, require_staff
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import volunteers as volunteer_service
from app.services.audit import record_audit_event
from scheduleright_shared.schemas.audit import AuditActions
from scheduleright_shared.schemas.volunteers import (
    ShiftAssignRequest,
    ShiftCreate,
    VolunteerCreate,
)

volunteers_router = APIRouter()
shifts_router = APIRouter()


@volunteers_router.get("")
async def list_volunteers(
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    volunteers = await volunteer_service.list_volunteers(store, require_org_id(user))
    return listing(volunteers)


@volunteers_router.post("", status_code=201)
async def create_volunteer(
    body: VolunteerCreate,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    org_id = require_org_id(user)
    volunteer = await volunteer_service.create_volunteer(store, org_id, body)
    await record_audit_event(
        store,
        action=AuditActions.VOLUNTEER_CREATE,
        user_id=user.user_id,
        org_id=org_id,
        resource_type="volunteer",
        resource_id=volunteer.id,
        request=request,
    )
    return volunteer.to_doc()


@shifts_router.get("")
async def list_shifts(
    site_id: Optional[str] = Query(None, alias="siteId"),
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    shifts = await volunteer_service.list_shifts(store, require_org_id(user), site_id)
    return listing(shifts)


@shifts_router.post("", status_code=201)
async def create_shift(
    body: ShiftCreate,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    org_id = require_org_id(user)
    shift = await volunteer_service.create_shift(store, org_id, body)
    await record_audit_event(
        store,
        action=AuditActions.SHIFT_CREATE,
        user_id=user.user_id,
        org_id=org_id,
        resource_type="shift",
        resource_id=shift.id,
        details={"siteId": shift.site_id},
        request=request,
    )
    return shift.to_doc()


@shifts_router.post("/{shiftId}/assign")
async def assign_volunteer(
    shiftId: str,
    body: ShiftAssignRequest,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    org_id = require_org_id(user)
    shift = await volunteer_service.assign_volunteer(store, org_id, shiftId, body.volunteer_id)
    await record_audit_event(
        store,
        action=AuditActions.SHIFT_ASSIGN,
        user_id=user.user_id,
        org_id=org_id,
        resource_type="shift",
        resource_id=shiftId,
        details={"volunteerId": body.volunteer_id},
        request=request,
    )
    return shift.to_doc()
