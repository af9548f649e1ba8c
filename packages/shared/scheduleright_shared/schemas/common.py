"""
Shared enums and base models for stored documents and API envelopes.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    VOLUNTEER = "VOLUNTEER"
    CLIENT = "CLIENT"


STAFF_ROLES: frozenset[str] = frozenset({Role.ADMIN.value, Role.STAFF.value})


class DocType(str, Enum):
    ORG = "org"
    SITE = "site"
    USER = "user"
    AVAILABILITY = "availability"
    BOOKING = "booking"
    EMBED_CONFIG = "embed_config"
    AUDIT = "audit"
    NOTIFICATION_PREFS = "notification_prefs"
    REMINDER_SETTINGS = "reminder_settings"
    VOLUNTEER = "volunteer"
    SHIFT = "shift"
    SYSTEM = "system"


def utcnow_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_doc_id(prefix: str) -> str:
    return f"{prefix}:{uuid.uuid4()}"


class CamelModel(BaseModel):
    """Base for request/response bodies that use camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Document(CamelModel):
    """
    Base for every persisted document.

    ``_id`` mirrors ``id``; ``_rev`` is the store revision and is only
    present once a document has been written.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    doc_id: Optional[str] = Field(default=None, alias="_id")
    rev: Optional[str] = Field(default=None, alias="_rev")
    id: str
    created_at: str = Field(default_factory=utcnow_iso)
    updated_at: str = Field(default_factory=utcnow_iso)

    def model_post_init(self, __context: Any) -> None:
        if self.doc_id is None:
            self.doc_id = self.id

    def to_doc(self) -> dict:
        """Serialize to the stored (camelCase, JSON-safe) representation."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    def touch(self) -> None:
        self.updated_at = utcnow_iso()

