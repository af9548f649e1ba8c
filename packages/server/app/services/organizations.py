"""
Organization service: business logic for orgs and their sites.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import DocumentNotFoundError, NotFoundError, ValidationError
from app.db.base import DocumentStore, FindQuery
from scheduleright_shared.schemas.common import DocType, new_doc_id
from scheduleright_shared.schemas.organizations import (
    Organization,
    OrgCreateRequest,
    OrgSettings,
    OrgUpdateRequest,
    Site,
    SiteCreateRequest,
)

log = structlog.get_logger()


def _deep_merge(base: dict, patch: dict) -> dict:
    """JSON Merge Patch style deep merge."""
    result = base.copy()
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

async def list_orgs(store: DocumentStore) -> list[Organization]:
    result = await store.find(
        FindQuery(selector={"type": DocType.ORG.value}, sort=[{"createdAt": "asc"}])
    )
    return [Organization.model_validate(doc) for doc in result.docs]


async def get_org(store: DocumentStore, org_id: str) -> Optional[Organization]:
    try:
        doc = await store.get(org_id)
    except DocumentNotFoundError:
        return None
    if doc.get("type") != DocType.ORG.value:
        return None
    return Organization.model_validate(doc)


async def get_org_or_404(store: DocumentStore, org_id: str) -> Organization:
    org = await get_org(store, org_id)
    if org is None:
        raise NotFoundError("Organization not found", code="ORG_NOT_FOUND")
    return org


async def create_org(store: DocumentStore, req: OrgCreateRequest) -> Organization:
    org = Organization(
        id=new_doc_id("org"),
        name=req.name,
        tenant_id=f"tenant:{uuid.uuid4()}",
        settings=req.settings,
    )
    result = await store.insert(org.to_doc())
    org.rev = result.rev
    log.info("org.created", org_id=org.id, name=org.name)
    return org


async def update_org(
    store: DocumentStore, org_id: str, req: OrgUpdateRequest
) -> Organization:
    """Partial update. Settings are deep-merged into the stored settings."""
    org = await get_org_or_404(store, org_id)

    if req.name is not None:
        org.name = req.name
    if req.settings is not None:
        current = org.settings.model_dump(by_alias=True, exclude_none=True)
        merged = _deep_merge(current, req.settings)
        try:
            org.settings = OrgSettings.model_validate(merged)
        except PydanticValidationError as exc:
            raise ValidationError(
                "Invalid organization settings",
                details=exc.errors(include_url=False, include_context=False),
            )

    org.touch()
    result = await store.insert(org.to_doc())
    org.rev = result.rev
    log.info("org.updated", org_id=org.id)
    return org


# ---------------------------------------------------------------------------
# Sites
# ---------------------------------------------------------------------------

async def list_sites(store: DocumentStore, org_id: str) -> list[Site]:
    result = await store.find(
        FindQuery(selector={"type": DocType.SITE.value, "orgId": org_id}, sort=["createdAt"])
    )
    return [Site.model_validate(doc) for doc in result.docs]


async def create_site(store: DocumentStore, org_id: str, req: SiteCreateRequest) -> Site:
    await get_org_or_404(store, org_id)
    site = Site(
        id=new_doc_id("site"),
        org_id=org_id,
        name=req.name,
        address=req.address,
        phone=req.phone,
        timezone=req.timezone,
    )
    result = await store.insert(site.to_doc())
    site.rev = result.rev
    log.info("site.created", org_id=org_id, site_id=site.id)
    return site


async def get_site(store: DocumentStore, site_id: str) -> Optional[Site]:
    try:
        doc = await store.get(site_id)
    except DocumentNotFoundError:
        return None
    if doc.get("type") != DocType.SITE.value:
        return None
    return Site.model_validate(doc)


async def get_site_or_404(
    store: DocumentStore, site_id: str, org_id: Optional[str] = None
) -> Site:
    """Load a site; a site owned by another org is reported as missing."""
    site = await get_site(store, site_id)
    if site is None or (org_id is not None and site.org_id != org_id):
        raise NotFoundError("Site not found", code="SITE_NOT_FOUND")
    return site
