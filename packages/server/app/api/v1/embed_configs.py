"""
Embed widget configuration endpoints.

GET    /api/v1/embed-configs             — List configs (Staff)
POST   /api/v1/embed-configs             — Create a config and its token (Staff)
PUT    /api/v1/embed-configs/{id}        — Partial update (Staff)
DELETE /api/v1/embed-configs/{id}        — Archive (Admin, idempotent)
GET    /api/v1/embed-configs/{id}/audit  — Audit trail for one config (Staff)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.api.responses import listing
from app.core.auth import CurrentUser, require_admin, require_org_id, require_staff
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import embeds as embed_service
from app.services.audit import get_resource_audit_trail, record_audit_event
from scheduleright_shared.schemas.audit import AuditActions
from scheduleright_shared.schemas.embeds import EmbedConfigCreate, EmbedConfigUpdate

router = APIRouter()

RESOURCE_TYPE = "embed_config"


@router.get("")
async def list_embed_configs(
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    configs = await embed_service.list_embed_configs(store, require_org_id(user))
    return listing(configs)


@router.post("", status_code=201)
async def create_embed_config(
    body: EmbedConfigCreate,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    org_id = require_org_id(user)
    config = await embed_service.create_embed_config(store, org_id, body, user.user_id)
    await record_audit_event(
        store,
        action=AuditActions.EMBED_CONFIG_CREATE,
        user_id=user.user_id,
        org_id=org_id,
        resource_type=RESOURCE_TYPE,
        resource_id=config.id,
        details={"siteId": config.site_id, "name": config.name},
        request=request,
    )
    return config.to_doc()


@router.put("/{configId}")
async def update_embed_config(
    configId: str,
    body: EmbedConfigUpdate,
    request: Request,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    org_id = require_org_id(user)
    config = await embed_service.update_embed_config(store, org_id, configId, body)
    await record_audit_event(
        store,
        action=AuditActions.EMBED_CONFIG_UPDATE,
        user_id=user.user_id,
        org_id=org_id,
        resource_type=RESOURCE_TYPE,
        resource_id=configId,
        details=body.model_dump(by_alias=True, exclude_none=True),
        request=request,
    )
    return config.to_doc()


@router.delete("/{configId}")
async def archive_embed_config(
    configId: str,
    request: Request,
    user: CurrentUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    """Archive a config. Repeating the call returns the archived config."""
    org_id = require_org_id(user)
    config = await embed_service.archive_embed_config(store, org_id, configId)
    await record_audit_event(
        store,
        action=AuditActions.EMBED_CONFIG_ARCHIVE,
        user_id=user.user_id,
        org_id=org_id,
        resource_type=RESOURCE_TYPE,
        resource_id=configId,
        request=request,
    )
    return config.to_doc()


@router.get("/{configId}/audit")
async def embed_config_audit_trail(
    configId: str,
    user: CurrentUser = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    org_id = require_org_id(user)
    await embed_service.get_embed_config_or_404(store, configId, org_id)
    entries = await get_resource_audit_trail(store, RESOURCE_TYPE, configId, org_id)
    return listing(entries)
