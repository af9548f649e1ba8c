"""
Organization and site endpoints.

GET  /api/v1/orgs                  — List orgs (Admin)
POST /api/v1/orgs                  — Create an org (Admin)
GET  /api/v1/orgs/{orgId}          — Get org details (own org)
PUT  /api/v1/orgs/{orgId}          — Update name/settings (Admin, own org)
GET  /api/v1/orgs/{orgId}/sites    — List sites (Staff)
POST /api/v1/orgs/{orgId}/sites    — Create a site (Staff)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.api.responses import listing
from app.core.auth import (
    CurrentUser,
    require_admin,
    require_auth,
    require_org_access,
    require_staff,
)
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import organizations as org_service
from app.services.audit import record_audit_event
from scheduleright_shared.schemas.audit import AuditActions
from scheduleright_shared.schemas.organizations import (
    OrgCreateRequest,
    OrgUpdateRequest,
    SiteCreateRequest,
)

router = APIRouter()


@router.get("")
async def list_orgs(
    user: CurrentUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    orgs = await org_service.list_orgs(store)
    return listing(orgs)


@router.post("", status_code=201)
async def create_org(
    body: OrgCreateRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    org = await org_service.create_org(store, body)
    await record_audit_event(
        store,
        action=AuditActions.ORG_CREATE,
        user_id=user.user_id,
        org_id=org.id,
        resource_type="org",
        resource_id=org.id,
        details={"name": org.name},
        request=request,
    )
    return org.to_doc()


@router.get("/{orgId}")
async def get_org(
    orgId: str,
    user: CurrentUser = Depends(require_auth),
    store: DocumentStore = Depends(get_store),
):
    require_org_access(user, orgId)
    org = await org_service.get_org_or_404(store, orgId)
    return org.to_doc()


@router.put("/{orgId}")
async def update_org(
    orgId: str,
    body: OrgUpdateRequest,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    """Partial update; ``settings`` is deep-merged into the stored settings."""
    require_org_access(user, orgId)
    org = await org_service.update_org(store, orgId, body)
    await record_audit_event(
        store,
        action=AuditActions.ORG_UPDATE,
        user_id=user.user_id,
        org_id=orgId,
        resource_type="org",
        resource_id=orgId,
        details=body.model_dump(by_alias=True, exclude_none=True),
        request=request,
    )
    return org.to_doc()


# ---------------------------------------------------------------------------
# Sites
# ---------------------------------------------------------------------------


@router.get("/{orgId}/sites")
async def list_sites(
    orgId: str,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    require_org_access(user, orgId)
    sites = await org_service.list_sites(store, orgId)
    return listing(sites)


@router.post("/{orgId}/sites", status_code=201)
async def create_site(
    orgId: str,
    body: SiteCreateRequest,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    require_org_access(user, orgId)
    site = await org_service.create_site(store, orgId, body)
    await record_audit_event(
        store,
        action=AuditActions.SITE_CREATE,
        user_id=user.user_id,
        org_id=orgId,
        resource_type="site",
        resource_id=site.id,
        details={"name": site.name},
        request=request,
    )
    return site.to_doc()
