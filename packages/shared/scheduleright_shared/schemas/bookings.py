"""
Booking schemas and the booking lifecycle table.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Literal, Optional

from pydantic import EmailStr, Field

from .common import CamelModel, Document


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


# Valid status transitions. A booking never moves to a different slot.
BOOKING_TRANSITIONS: dict[BookingStatus, list[BookingStatus]] = {
    BookingStatus.PENDING: [
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
        BookingStatus.NO_SHOW,
    ],
    BookingStatus.CONFIRMED: [
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
        BookingStatus.NO_SHOW,
    ],
    BookingStatus.COMPLETED: [],
    BookingStatus.CANCELLED: [],
    BookingStatus.NO_SHOW: [],
}

# Bookings in these states hold a unit of slot capacity.
CAPACITY_HOLDING_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)


def validate_transition(current: BookingStatus, target: BookingStatus) -> tuple[bool, str]:
    """Check a booking status change. Returns (valid, message)."""
    if target in BOOKING_TRANSITIONS[current]:
        return True, ""
    return False, f"Cannot move booking from '{current.value}' to '{target.value}'"


class ClientInfo(CamelModel):
    client_name: str = Field(..., min_length=2, max_length=200)
    client_email: EmailStr
    client_phone: Optional[str] = Field(None, max_length=40)
    notes: Optional[str] = Field(None, max_length=2000)


class BookingCreateRequest(ClientInfo):
    slot_id: str
    date: Optional[dt.date] = Field(
        None,
        description="Occurrence date for recurring slots (ignored for one-time slots)",
    )


class PublicBookingRequest(BookingCreateRequest):
    site_id: str
    token: Optional[str] = None


class CancelRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=1000)


class StaffNotesRequest(CamelModel):
    notes: str = Field(..., max_length=5000)


class Booking(Document):
    type: Literal["booking"] = "booking"
    site_id: str
    org_id: str
    slot_id: str
    client_id: Optional[str] = None
    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    start_time: str
    end_time: str
    duration_minutes: int
    status: BookingStatus = BookingStatus.PENDING
    notes: Optional[str] = None
    staff_notes: Optional[str] = None
    confirmed_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    cancel_reason: Optional[str] = None
    reminder_sent_at: Optional[str] = None
