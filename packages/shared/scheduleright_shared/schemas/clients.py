"""
Client directory schemas. Clients are not stored; summaries are derived
from an org's bookings, keyed by lowercased email.
"""

from __future__ import annotations

from typing import Optional

from .common import CamelModel


class ClientSummary(CamelModel):
    email: str
    name: str
    phone: Optional[str] = None
    total_bookings: int = 0
    last_booking_at: Optional[str] = None
    upcoming_count: int = 0
    completed_count: int = 0
    cancelled_count: int = 0

    def to_doc(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
