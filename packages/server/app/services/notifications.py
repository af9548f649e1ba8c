"""
Notification preferences per user.
"""

from __future__ import annotations

import structlog

from app.core.errors import DocumentNotFoundError
from app.db.base import DocumentStore
from scheduleright_shared.schemas.notifications import (
    NotificationKind,
    NotificationPreferences,
    NotificationPreferencesUpdate,
)

log = structlog.get_logger()


def _prefs_id(user_id: str) -> str:
    return f"notification_prefs:{user_id}"


async def get_preferences(store: DocumentStore, user_id: str) -> NotificationPreferences:
    """Stored preferences, or the defaults when the user has none."""
    try:
        doc = await store.get(_prefs_id(user_id))
    except DocumentNotFoundError:
        return NotificationPreferences(id=_prefs_id(user_id), user_id=user_id)
    return NotificationPreferences.model_validate(doc)


async def update_preferences(
    store: DocumentStore, user_id: str, patch: NotificationPreferencesUpdate
) -> NotificationPreferences:
    prefs = await get_preferences(store, user_id)
    changes = patch.model_dump(exclude_none=True)
    for field, value in changes.items():
        setattr(prefs, field, value)
    prefs.touch()
    result = await store.insert(prefs.to_doc())
    prefs.rev = result.rev
    log.info("notification_prefs.updated", user_id=user_id, fields=sorted(changes))
    return prefs


async def should_notify(store: DocumentStore, user_id: str, kind: NotificationKind) -> bool:
    prefs = await get_preferences(store, user_id)
    return prefs.allows(kind)
