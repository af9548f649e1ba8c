"""
Background task: send SMS reminders for upcoming bookings.

Started from the application lifespan when ``SR_REMINDER_INTERVAL_SECONDS``
is positive; the sweep can also be triggered through the reminders API.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from app.db.base import DocumentStore
from app.services.reminders import send_due_reminders
from app.services.sms import TwilioSMSSender
from scheduleright_shared.schemas.notifications import ReminderRunResult

log = structlog.get_logger()


async def run_reminder_sweep(
    store: DocumentStore, sender: Optional[TwilioSMSSender]
) -> Optional[ReminderRunResult]:
    """Run one sweep. Errors are logged so the loop keeps going."""
    try:
        return await send_due_reminders(store, sender)
    except Exception:
        log.exception("reminders.sweep_failed")
        return None


async def reminder_loop(
    store: DocumentStore, sender: Optional[TwilioSMSSender], interval_seconds: int
) -> None:
    log.info("reminders.loop_started", interval_seconds=interval_seconds)
    try:
        while True:
            await run_reminder_sweep(store, sender)
            await asyncio.sleep(interval_seconds)
    except asyncio.CancelledError:
        log.info("reminders.loop_stopped")
        raise
