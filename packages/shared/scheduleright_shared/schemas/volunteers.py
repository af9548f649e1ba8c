"""
Volunteer and shift schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field, model_validator

from .common import CamelModel, Document


class VolunteerCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=40)
    skills: list[str] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=2000)


class Volunteer(Document):
    type: Literal["volunteer"] = "volunteer"
    org_id: str
    name: str
    email: str
    phone: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    status: str = "active"


class ShiftCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    site_id: str
    start: datetime
    end: datetime
    capacity: int = Field(1, ge=1, le=500)
    location: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _end_after_start(self) -> "ShiftCreate":
        if self.end <= self.start:
            raise ValueError("Shift end must be after start")
        return self


class Shift(Document):
    type: Literal["shift"] = "shift"
    org_id: str
    site_id: str
    title: str
    start: str
    end: str
    capacity: int = Field(1, ge=1, le=500)
    location: Optional[str] = None
    notes: Optional[str] = None
    assigned_volunteer_ids: list[str] = Field(default_factory=list)
    status: str = "scheduled"


class ShiftAssignRequest(CamelModel):
    volunteer_id: str
