"""
SMS reminder endpoints.

GET  /api/v1/reminders/settings — Org reminder settings (Staff)
PUT  /api/v1/reminders/settings — Partial update (Admin)
POST /api/v1/reminders/run      — Run one reminder sweep for the org now (Admin)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.auth import CurrentUser, require_admin, require_org_id, require_staff
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import reminders as reminder_service
from app.services.audit import record_audit_event
from scheduleright_shared.schemas.audit import AuditActions
from scheduleright_shared.schemas.notifications import ReminderRunResult, ReminderSettingsUpdate

router = APIRouter()


@router.get("/settings")
async def get_reminder_settings(
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    settings = await reminder_service.get_reminder_settings(store, require_org_id(user))
    return settings.to_doc()


@router.put("/settings")
async def update_reminder_settings(
    body: ReminderSettingsUpdate,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    org_id = require_org_id(user)
    settings = await reminder_service.update_reminder_settings(store, org_id, body)
    await record_audit_event(
        store,
        action=AuditActions.REMINDER_SETTINGS_UPDATE,
        user_id=user.user_id,
        org_id=org_id,
        resource_type="reminder_settings",
        resource_id=settings.id,
        details=body.model_dump(by_alias=True, exclude_none=True),
        request=request,
    )
    return settings.to_doc()


@router.post("/run", response_model=ReminderRunResult)
async def run_reminders(
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    """Send due reminders for the caller's org without waiting for the background loop."""
    return await reminder_service.send_due_reminders(
        store, request.app.state.sms_sender, org_id=require_org_id(user)
    )
