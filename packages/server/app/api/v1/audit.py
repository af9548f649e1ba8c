"""
Audit log endpoints (Admin).

GET /api/v1/audit/logs  — Filtered log entries for the caller's org, newest first
GET /api/v1/audit/stats — Counts by action and resource type
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.responses import listing
from app.core.auth import CurrentUser, require_admin, require_org_id
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import audit as audit_service
from scheduleright_shared.schemas.audit import AuditFilters

router = APIRouter()


@router.get("/logs")
async def list_audit_logs(
    user_id: Optional[str] = Query(None, alias="userId"),
    action: Optional[str] = None,
    resource_type: Optional[str] = Query(None, alias="resourceType"),
    resource_id: Optional[str] = Query(None, alias="resourceId"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    limit: int = Query(100, ge=1, le=1000),
    user: CurrentUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    filters = AuditFilters(
        org_id=require_org_id(user),
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
    )
    entries = await audit_service.get_audit_logs(store, filters)
    return listing(entries)


@router.get("/stats")
async def audit_stats(
    days: int = Query(30, ge=1, le=365),
    user: CurrentUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    stats = await audit_service.get_audit_stats(store, require_org_id(user), days)
    return stats.model_dump(by_alias=True)
