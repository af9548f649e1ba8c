"""
Organization and site schemas.

Covers: org CRUD request bodies, OrgSettings and branding sub-models,
the stored Organization and Site documents.
"""

from __future__ import annotations

from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator

from .common import CamelModel, Document

HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


# ---------------------------------------------------------------------------
# Org settings sub-models
# ---------------------------------------------------------------------------

class Branding(CamelModel):
    logo_url: Optional[str] = None
    primary_color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    secondary_color: Optional[str] = Field(default=None, pattern=HEX_COLOR)


class OrgSettings(CamelModel):
    """Org-level settings. All fields optional with defaults."""

    timezone: str = Field(default="UTC", min_length=1, description="IANA timezone name")
    branding: Optional[Branding] = None


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

class Organization(Document):
    type: Literal["org"] = "org"
    name: str = Field(..., min_length=3, max_length=100)
    tenant_id: str
    settings: OrgSettings = Field(default_factory=OrgSettings)


class Site(Document):
    type: Literal["site"] = "site"
    org_id: str
    name: str = Field(..., min_length=3, max_length=100)
    address: Optional[str] = None
    phone: Optional[str] = None
    timezone: str = "UTC"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(CamelModel):
    name: str = Field(..., min_length=3, max_length=100, description="Organization display name")
    settings: OrgSettings = Field(default_factory=OrgSettings)


class OrgUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    settings: Optional[dict] = Field(
        None,
        description="Partial settings update (deep-merged)",
    )


class SiteCreateRequest(CamelModel):
    name: str = Field(..., min_length=3, max_length=100)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=40)
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value}")
        return value
