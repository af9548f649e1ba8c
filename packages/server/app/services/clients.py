"""
Client directory: per-client booking summaries for one organization.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from app.core.errors import NotFoundError
from app.db.base import DocumentStore
from app.services.bookings import get_bookings_for_org
from app.services.reminders import parse_iso
from scheduleright_shared.schemas.bookings import Booking, BookingStatus
from scheduleright_shared.schemas.clients import ClientSummary


def _later(current: Optional[str], candidate: Optional[str]) -> Optional[str]:
    if not candidate:
        return current
    if not current or parse_iso(candidate) > parse_iso(current):
        return candidate
    return current


def build_client_summaries(bookings: Iterable[Booking]) -> list[ClientSummary]:
    """
    Group bookings by client email and count them by outcome.

    Anything neither completed nor cancelled counts as upcoming. The most
    recently active client comes first; clients with no dates go last.
    """
    summaries: dict[str, ClientSummary] = {}
    for booking in bookings:
        if not booking.client_email:
            continue
        key = booking.client_email.lower()
        summary = summaries.get(key)
        if summary is None:
            summary = summaries[key] = ClientSummary(email=key, name=booking.client_name)

        summary.total_bookings += 1
        summary.name = summary.name or booking.client_name
        summary.phone = summary.phone or booking.client_phone
        summary.last_booking_at = _later(
            summary.last_booking_at, booking.start_time or booking.created_at
        )

        if booking.status == BookingStatus.COMPLETED:
            summary.completed_count += 1
        elif booking.status == BookingStatus.CANCELLED:
            summary.cancelled_count += 1
        else:
            summary.upcoming_count += 1

    dated = [s for s in summaries.values() if s.last_booking_at]
    undated = [s for s in summaries.values() if not s.last_booking_at]
    dated.sort(key=lambda s: parse_iso(s.last_booking_at), reverse=True)
    return dated + undated


async def list_clients(store: DocumentStore, org_id: str) -> list[ClientSummary]:
    return build_client_summaries(await get_bookings_for_org(store, org_id))


async def get_client_detail(
    store: DocumentStore, org_id: str, email: str
) -> tuple[ClientSummary, list[Booking]]:
    bookings = await get_bookings_for_org(store, org_id, client_email=email)
    if not bookings:
        raise NotFoundError("Client not found", code="CLIENT_NOT_FOUND")
    return build_client_summaries(bookings)[0], bookings
