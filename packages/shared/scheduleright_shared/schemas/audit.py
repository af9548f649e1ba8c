"""
Audit log schemas and action names.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import Field

from .common import CamelModel, Document, utcnow_iso


class AuditActions:
    """Action names recorded in the audit log."""

    USER_LOGIN = "user.login"
    USER_LOGOUT = "user.logout"

    ORG_CREATE = "org.create"
    ORG_UPDATE = "org.update"
    SITE_CREATE = "site.create"

    AVAILABILITY_CREATE = "availability.create"
    AVAILABILITY_DEACTIVATE = "availability.deactivate"

    BOOKING_CREATE = "booking.create"
    BOOKING_CONFIRM = "booking.confirm"
    BOOKING_CANCEL = "booking.cancel"
    BOOKING_COMPLETE = "booking.complete"
    BOOKING_NO_SHOW = "booking.no_show"
    BOOKING_NOTES = "booking.notes"

    EMBED_CONFIG_CREATE = "embed.config.create"
    EMBED_CONFIG_UPDATE = "embed.config.update"
    EMBED_CONFIG_ARCHIVE = "embed.config.archive"

    NOTIFICATION_PREFS_UPDATE = "notification.preferences.update"
    REMINDER_SETTINGS_UPDATE = "reminder.settings.update"
    REMINDER_SENT = "reminder.sent"

    VOLUNTEER_CREATE = "volunteer.create"
    SHIFT_CREATE = "shift.create"
    SHIFT_ASSIGN = "shift.assign"

    BOOTSTRAP_COMPLETE = "bootstrap.complete"


class AuditLog(Document):
    type: Literal["audit"] = "audit"
    action: str
    user_id: str
    org_id: Optional[str] = None
    resource_type: str
    resource_id: str
    details: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: str = Field(default_factory=utcnow_iso)


class AuditLogCreate(CamelModel):
    action: str
    user_id: str
    org_id: Optional[str] = None
    resource_type: str
    resource_id: str
    details: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditFilters(CamelModel):
    org_id: Optional[str] = None
    user_id: Optional[str] = None
    action: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    limit: int = Field(100, ge=1, le=1000)


class AuditStats(CamelModel):
    org_id: str
    days: int
    total: int
    by_action: dict[str, int]
    by_resource_type: dict[str, int]
