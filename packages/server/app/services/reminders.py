"""
SMS reminder settings per org and the reminder sweep.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from app.core.errors import DocumentConflictError, DocumentNotFoundError
from app.db.base import DocumentStore
from app.services.audit import record_audit_event
from app.services.bookings import (
    get_booking,
    get_upcoming_bookings,
    mark_reminder_sent,
    site_zone,
)
from app.services.notifications import should_notify
from app.services.organizations import get_site
from app.services.sms import TwilioSMSSender
from scheduleright_shared.schemas.audit import AuditActions
from scheduleright_shared.schemas.bookings import Booking
from scheduleright_shared.schemas.notifications import (
    NotificationKind,
    ReminderRunResult,
    ReminderSettings,
    ReminderSettingsUpdate,
)
from scheduleright_shared.schemas.organizations import Site

log = structlog.get_logger()

SWEEP_HORIZON_HOURS = 72


def _settings_id(org_id: str) -> str:
    return f"reminder_settings:{org_id}"


def _iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


async def get_reminder_settings(store: DocumentStore, org_id: str) -> ReminderSettings:
    try:
        doc = await store.get(_settings_id(org_id))
    except DocumentNotFoundError:
        return ReminderSettings(id=_settings_id(org_id), org_id=org_id)
    return ReminderSettings.model_validate(doc)


async def update_reminder_settings(
    store: DocumentStore, org_id: str, patch: ReminderSettingsUpdate
) -> ReminderSettings:
    settings = await get_reminder_settings(store, org_id)
    changes = patch.model_dump(exclude_none=True)
    for field, value in changes.items():
        setattr(settings, field, value)
    settings.touch()
    result = await store.insert(settings.to_doc())
    settings.rev = result.rev
    log.info("reminder_settings.updated", org_id=org_id, fields=sorted(changes))
    return settings


def render_template(
    template: str, booking: Booking, site_name: str = "", tz_name: Optional[str] = "UTC"
) -> str:
    """Fill ``{{name}}``, ``{{date}}``, ``{{time}}`` and ``{{site}}``; times in the site's zone."""
    start = parse_iso(booking.start_time).astimezone(site_zone(tz_name))
    hour = start.hour % 12 or 12
    suffix = "AM" if start.hour < 12 else "PM"
    replacements = {
        "{{name}}": booking.client_name,
        "{{date}}": f"{start.strftime('%b')} {start.day}, {start.year}",
        "{{time}}": f"{hour}:{start.minute:02d} {suffix}",
        "{{site}}": site_name,
    }
    message = template
    for placeholder, value in replacements.items():
        message = message.replace(placeholder, value)
    return message


def in_reminder_window(booking: Booking, lead_time_hours: int, now: datetime) -> bool:
    hours_until = (parse_iso(booking.start_time) - now).total_seconds() / 3600
    return lead_time_hours <= hours_until < lead_time_hours + 1


async def _stamp_reminder(store: DocumentStore, booking: Booking) -> bool:
    """Set ``reminderSentAt``, re-reading the booking once if it changed since the scan."""
    try:
        await mark_reminder_sent(store, booking)
        return True
    except DocumentConflictError:
        log.info("reminders.booking_changed", booking_id=booking.id)

    fresh = await get_booking(store, booking.id)
    if fresh is None:
        return False
    try:
        await mark_reminder_sent(store, fresh)
    except DocumentConflictError:
        log.warning("reminders.stamp_failed", booking_id=booking.id)
        return False
    return True


async def send_due_reminders(
    store: DocumentStore,
    sender: Optional[TwilioSMSSender],
    now: Optional[datetime] = None,
    org_id: Optional[str] = None,
) -> ReminderRunResult:
    """
    Send one SMS per booking whose start is ``leadTimeHours`` away (within
    the following hour). Bookings already reminded, without a phone, in
    orgs with reminders off, or whose client opted out are skipped. ``org_id``
    limits the sweep to one organization.
    """
    if sender is None:
        return ReminderRunResult(reason="twilio_not_configured")

    now = now or datetime.now(timezone.utc)
    bookings = await get_upcoming_bookings(
        store, _iso(now), _iso(now + timedelta(hours=SWEEP_HORIZON_HOURS)), org_id
    )
    result = ReminderRunResult(scanned=len(bookings))
    settings_cache: dict[str, ReminderSettings] = {}
    sites: dict[str, Optional[Site]] = {}

    for booking in bookings:
        if not booking.client_phone or booking.reminder_sent_at:
            result.skipped += 1
            continue

        settings = settings_cache.get(booking.org_id)
        if settings is None:
            settings = await get_reminder_settings(store, booking.org_id)
            settings_cache[booking.org_id] = settings
        if not settings.enabled:
            result.skipped += 1
            continue

        if booking.client_id and not await should_notify(
            store, booking.client_id, NotificationKind.SMS_REMINDER
        ):
            result.skipped += 1
            continue

        if not in_reminder_window(booking, settings.lead_time_hours, now):
            result.skipped += 1
            continue

        if booking.site_id not in sites:
            sites[booking.site_id] = await get_site(store, booking.site_id)
        site = sites[booking.site_id]

        message = render_template(
            settings.template,
            booking,
            site.name if site else "",
            site.timezone if site else "UTC",
        )
        sms = await sender.send(booking.client_phone, message)
        if not sms.ok:
            result.failed += 1
            continue
        if not await _stamp_reminder(store, booking):
            result.failed += 1
            continue
        await record_audit_event(
            store,
            action=AuditActions.REMINDER_SENT,
            user_id="system",
            org_id=booking.org_id,
            resource_type="booking",
            resource_id=booking.id,
            details={"sid": sms.sid},
        )
        result.sent += 1

    log.info(
        "reminders.sweep_finished",
        scanned=result.scanned,
        sent=result.sent,
        skipped=result.skipped,
        failed=result.failed,
    )
    return result
