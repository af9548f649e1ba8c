"""
Embed widget configuration schemas.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import Field

from .common import CamelModel, Document

HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


class EmbedStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class EmbedConfigCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    site_id: str
    theme_color: str = Field("#2563eb", pattern=HEX_COLOR)
    button_label: str = Field("Book now", min_length=1, max_length=50)
    allow_domains: list[str] = Field(default_factory=list)
    locale: str = Field("en", min_length=2, max_length=10)
    timezone: str = "UTC"
    default_service: Optional[str] = Field(None, max_length=100)


class EmbedConfigUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    theme_color: Optional[str] = Field(None, pattern=HEX_COLOR)
    button_label: Optional[str] = Field(None, min_length=1, max_length=50)
    allow_domains: Optional[list[str]] = None
    locale: Optional[str] = Field(None, min_length=2, max_length=10)
    timezone: Optional[str] = None
    default_service: Optional[str] = Field(None, max_length=100)


class EmbedConfig(Document):
    type: Literal["embed_config"] = "embed_config"
    org_id: str
    site_id: str
    name: str
    token: str
    theme_color: str = "#2563eb"
    button_label: str = "Book now"
    allow_domains: list[str] = Field(default_factory=list)
    locale: str = "en"
    timezone: str = "UTC"
    default_service: Optional[str] = None
    status: EmbedStatus = EmbedStatus.ACTIVE
    created_by: Optional[str] = None
    archived_at: Optional[str] = None


class PublicEmbedConfig(CamelModel):
    """What the widget sees when it resolves a token; never exposes orgId internals."""

    site_id: str
    name: str
    theme_color: str
    button_label: str
    locale: str
    timezone: str
    default_service: Optional[str] = None
