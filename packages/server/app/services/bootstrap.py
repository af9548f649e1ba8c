"""
First-run setup: the first organization and its administrator.
"""

from __future__ import annotations

import structlog

from app.core.errors import ConflictError, DocumentConflictError, DocumentNotFoundError
from app.db.base import DocumentStore
from app.services.organizations import create_org
from app.services.users import create_user
from scheduleright_shared.schemas.common import Role, utcnow_iso
from scheduleright_shared.schemas.organizations import Organization, OrgCreateRequest
from scheduleright_shared.schemas.users import BootstrapRequest, BootstrapStatus, User

log = structlog.get_logger()

BOOTSTRAP_DOC_ID = "system:bootstrap"


async def get_bootstrap_status(store: DocumentStore) -> BootstrapStatus:
    try:
        doc = await store.get(BOOTSTRAP_DOC_ID)
    except DocumentNotFoundError:
        return BootstrapStatus(bootstrapped=False)
    return BootstrapStatus(
        bootstrapped=True,
        org_id=doc.get("orgId"),
        completed_at=doc.get("completedAt"),
    )


async def bootstrap(
    store: DocumentStore, req: BootstrapRequest
) -> tuple[Organization, User]:
    """Create the first org and admin. Only allowed once."""
    status = await get_bootstrap_status(store)
    if status.bootstrapped:
        raise ConflictError("System already bootstrapped", code="BOOTSTRAP_EXISTS")

    org = await create_org(store, OrgCreateRequest(name=req.org_name))
    admin = await create_user(
        store,
        email=str(req.admin_email),
        password=req.admin_password,
        name=req.admin_name,
        roles=[Role.ADMIN, Role.STAFF],
        org_id=org.id,
        verified=True,
    )
    try:
        await store.insert(
            {
                "_id": BOOTSTRAP_DOC_ID,
                "id": BOOTSTRAP_DOC_ID,
                "type": "system",
                "orgId": org.id,
                "adminUserId": admin.id,
                "completedAt": utcnow_iso(),
            }
        )
    except DocumentConflictError:
        raise ConflictError("System already bootstrapped", code="BOOTSTRAP_EXISTS")

    log.info("bootstrap.completed", org_id=org.id, admin_user_id=admin.id)
    return org, admin
