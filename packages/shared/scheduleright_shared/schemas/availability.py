"""
Availability slot schemas.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Literal, Optional

from pydantic import Field

from .common import CamelModel, Document

HHMM = r"^\d{2}:\d{2}$"


class SlotStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"


class Recurrence(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ONCE = "once"


class SlotCreateRequest(CamelModel):
    site_id: Optional[str] = None
    day_of_week: Optional[int] = Field(None, ge=0, le=6, description="0 = Sunday")
    start_time: str = Field(..., pattern=HHMM)
    end_time: str = Field(..., pattern=HHMM)
    recurrence: Recurrence
    recurrence_end_date: Optional[date] = None
    specific_date: Optional[date] = None
    capacity: int = Field(..., ge=1)
    duration_minutes: int = Field(..., ge=15)
    buffer: int = Field(0, ge=0)
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    notes_for_clients: Optional[str] = Field(None, max_length=2000)


class AvailabilitySlot(Document):
    type: Literal["availability"] = "availability"
    site_id: str
    org_id: str
    day_of_week: int = 0
    start_time: str
    end_time: str
    recurrence: Recurrence
    recurrence_end_date: Optional[str] = None
    specific_date: Optional[str] = None
    capacity: int = Field(..., ge=1)
    current_bookings: int = Field(0, ge=0)
    duration_minutes: int
    buffer: int = 0
    title: Optional[str] = None
    description: Optional[str] = None
    notes_for_clients: Optional[str] = None
    status: SlotStatus = SlotStatus.ACTIVE
