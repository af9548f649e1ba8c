"""
Audit service: append-only log of state-changing operations.

Routes call ``record_audit_event``; a failed audit write is logged and the
business operation carries on. ``create_audit_log`` itself raises so that
callers which must know about failures can.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from fastapi import Request

from app.db.base import DocumentStore, FindQuery
from scheduleright_shared.schemas.audit import AuditFilters, AuditLog, AuditLogCreate, AuditStats
from scheduleright_shared.schemas.common import DocType, new_doc_id

log = structlog.get_logger()

DEFAULT_LOG_LIMIT = 100
TRAIL_LIMIT = 50


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def create_audit_log(store: DocumentStore, entry: AuditLogCreate) -> AuditLog:
    audit = AuditLog(
        id=new_doc_id("audit"),
        action=entry.action,
        user_id=entry.user_id,
        org_id=entry.org_id,
        resource_type=entry.resource_type,
        resource_id=entry.resource_id,
        details=entry.details,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
    )
    result = await store.insert(audit.to_doc())
    audit.rev = result.rev
    return audit


async def record_audit_event(
    store: DocumentStore,
    *,
    action: str,
    user_id: str,
    org_id: Optional[str],
    resource_type: str,
    resource_id: str,
    details: Optional[dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> Optional[AuditLog]:
    """Write an audit entry; failures are logged, never raised."""
    entry = AuditLogCreate(
        action=action,
        user_id=user_id,
        org_id=org_id,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=_client_ip(request) if request is not None else None,
        user_agent=request.headers.get("user-agent") if request is not None else None,
    )
    try:
        return await create_audit_log(store, entry)
    except Exception:
        log.exception(
            "audit.write_failed",
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
        )
        return None


async def get_audit_logs(store: DocumentStore, filters: AuditFilters) -> list[AuditLog]:
    selector: dict[str, Any] = {"type": DocType.AUDIT.value}
    for key, value in (
        ("orgId", filters.org_id),
        ("userId", filters.user_id),
        ("action", filters.action),
        ("resourceType", filters.resource_type),
        ("resourceId", filters.resource_id),
    ):
        if value:
            selector[key] = value

    timestamp: dict[str, str] = {}
    if filters.start_date:
        timestamp["$gte"] = filters.start_date
    if filters.end_date:
        timestamp["$lte"] = filters.end_date
    if timestamp:
        selector["timestamp"] = timestamp

    result = await store.find(
        FindQuery(
            selector=selector,
            sort=[{"timestamp": "desc"}],
            limit=filters.limit or DEFAULT_LOG_LIMIT,
        )
    )
    return [AuditLog.model_validate(doc) for doc in result.docs]


async def get_resource_audit_trail(
    store: DocumentStore,
    resource_type: str,
    resource_id: str,
    org_id: Optional[str] = None,
) -> list[AuditLog]:
    selector: dict[str, Any] = {
        "type": DocType.AUDIT.value,
        "resourceType": resource_type,
        "resourceId": resource_id,
    }
    if org_id:
        selector["orgId"] = org_id
    result = await store.find(
        FindQuery(selector=selector, sort=[{"timestamp": "desc"}], limit=TRAIL_LIMIT)
    )
    return [AuditLog.model_validate(doc) for doc in result.docs]


async def get_audit_stats(store: DocumentStore, org_id: str, days: int = 30) -> AuditStats:
    since = datetime.now(timezone.utc) - timedelta(days=days)
    since_iso = since.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    result = await store.find(
        FindQuery(
            selector={
                "type": DocType.AUDIT.value,
                "orgId": org_id,
                "timestamp": {"$gte": since_iso},
            }
        )
    )
    by_action: Counter[str] = Counter()
    by_resource: Counter[str] = Counter()
    for doc in result.docs:
        by_action[doc.get("action", "unknown")] += 1
        by_resource[doc.get("resourceType", "unknown")] += 1
    return AuditStats(
        org_id=org_id,
        days=days,
        total=len(result.docs),
        by_action=dict(by_action),
        by_resource_type=dict(by_resource),
    )
