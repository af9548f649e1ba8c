"""
Notification preference endpoints.

GET /api/v1/notifications/preferences — The caller's preferences (defaults if unset)
PUT /api/v1/notifications/preferences — Partial update
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.auth import CurrentUser, require_auth
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import notifications as notification_service
from app.services.audit import record_audit_event
from scheduleright_shared.schemas.audit import AuditActions
from scheduleright_shared.schemas.notifications import NotificationPreferencesUpdate

router = APIRouter()


@router.get("/preferences")
async def get_preferences(
    user: CurrentUser = Depends(require_auth),
    store: DocumentStore = Depends(get_store),
):
    prefs = await notification_service.get_preferences(store, user.user_id)
    return prefs.to_doc()


@router.put("/preferences")
async def update_preferences(
    body: NotificationPreferencesUpdate,
    request: Request,
    user: CurrentUser = Depends(require_auth),
    store: DocumentStore = Depends(get_store),
):
    prefs = await notification_service.update_preferences(store, user.user_id, body)
    await record_audit_event(
        store,
        action=AuditActions.NOTIFICATION_PREFS_UPDATE,
        user_id=user.user_id,
        org_id=user.org_id,
        resource_type="notification_prefs",
        resource_id=prefs.id,
        details=body.model_dump(by_alias=True, exclude_none=True),
        request=request,
    )
    return prefs.to_doc()
