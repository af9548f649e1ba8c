"""
First-run setup endpoints.

GET  /api/v1/bootstrap/status — Whether setup has been completed
POST /api/v1/bootstrap        — Create the first org and its administrator
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import bootstrap as bootstrap_service
from app.services.audit import record_audit_event
from scheduleright_shared.schemas.audit import AuditActions
from scheduleright_shared.schemas.users import BootstrapRequest, BootstrapStatus, UserResponse

router = APIRouter()


@router.get("/status", response_model=BootstrapStatus)
async def bootstrap_status(store: DocumentStore = Depends(get_store)):
    return await bootstrap_service.get_bootstrap_status(store)


@router.post("", status_code=201)
async def run_bootstrap(
    body: BootstrapRequest,
    request: Request,
    store: DocumentStore = Depends(get_store),
):
    """One-time setup. A second call is rejected with 409 BOOTSTRAP_EXISTS."""
    org, admin = await bootstrap_service.bootstrap(store, body)
    await record_audit_event(
        store,
        action=AuditActions.BOOTSTRAP_COMPLETE,
        user_id=admin.id,
        org_id=org.id,
        resource_type="org",
        resource_id=org.id,
        request=request,
    )
    return {
        "org": org.to_doc(),
        "user": UserResponse.from_user(admin).model_dump(by_alias=True, mode="json"),
    }
