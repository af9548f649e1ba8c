"""
Notification preference and SMS reminder settings schemas.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import Field

from .common import CamelModel, Document

DEFAULT_REMINDER_TEMPLATE = (
    "Hello {{name}}, your appointment is scheduled for {{date}} at {{time}}."
)


class NotificationKind(str, Enum):
    BOOKING_CONFIRMATION = "bookingConfirmation"
    BOOKING_REMINDER = "bookingReminder"
    BOOKING_CANCELLATION = "bookingCancellation"
    BOOKING_UPDATE = "bookingUpdate"
    EMAIL_REMINDER = "emailReminder"
    SMS_REMINDER = "smsReminder"
    STAFF_NOTIFICATIONS = "staffNotifications"


class NotificationPreferences(Document):
    type: Literal["notification_prefs"] = "notification_prefs"
    user_id: str
    booking_confirmation: bool = True
    booking_reminder: bool = True
    booking_cancellation: bool = True
    booking_update: bool = True
    email_reminder: bool = False
    sms_reminder: bool = True
    staff_notifications: bool = True

    def allows(self, kind: NotificationKind) -> bool:
        data = self.model_dump(by_alias=True)
        return bool(data.get(kind.value, False))


class NotificationPreferencesUpdate(CamelModel):
    booking_confirmation: Optional[bool] = None
    booking_reminder: Optional[bool] = None
    booking_cancellation: Optional[bool] = None
    booking_update: Optional[bool] = None
    email_reminder: Optional[bool] = None
    sms_reminder: Optional[bool] = None
    staff_notifications: Optional[bool] = None


class ReminderSettings(Document):
    type: Literal["reminder_settings"] = "reminder_settings"
    org_id: str
    enabled: bool = False
    lead_time_hours: int = Field(24, ge=1, le=72)
    template: str = Field(DEFAULT_REMINDER_TEMPLATE, min_length=1, max_length=480)


class ReminderSettingsUpdate(CamelModel):
    enabled: Optional[bool] = None
    lead_time_hours: Optional[int] = Field(None, ge=1, le=72)
    template: Optional[str] = Field(None, min_length=1, max_length=480)


class ReminderRunResult(CamelModel):
    scanned: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    reason: str = "ok"
