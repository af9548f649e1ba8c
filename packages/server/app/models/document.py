"""Relational table that stores JSON documents with denormalized index columns."""

from typing import Any, Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

# Document key -> index column. Selectors on these keys are pushed down to SQL.
INDEXED_KEYS: dict[str, str] = {
    "_id": "id",
    "id": "id",
    "type": "type",
    "orgId": "org_id",
    "siteId": "site_id",
    "email": "email",
    "status": "status",
    "slotId": "slot_id",
    "clientEmail": "client_email",
    "token": "token",
    "userId": "user_id",
    "action": "action",
    "resourceType": "resource_type",
    "resourceId": "resource_id",
    "timestamp": "timestamp",
    "createdAt": "created_at",
}


def _indexed(length: int = 191) -> Any:
    return Field(default=None, sa_column=sa.Column(sa.String(length), nullable=True, index=True))


class StoredDocument(SQLModel, table=True):
    __tablename__ = "documents"

    id: str = Field(sa_column=sa.Column(sa.String(191), primary_key=True))
    rev: str = Field(sa_column=sa.Column(sa.String(64), nullable=False))
    type: Optional[str] = _indexed(50)
    data: dict = Field(default_factory=dict, sa_column=sa.Column(sa.JSON, nullable=False))

    org_id: Optional[str] = _indexed()
    site_id: Optional[str] = _indexed()
    email: Optional[str] = _indexed()
    status: Optional[str] = _indexed(32)
    slot_id: Optional[str] = _indexed()
    client_email: Optional[str] = _indexed()
    token: Optional[str] = _indexed(64)
    user_id: Optional[str] = _indexed()
    action: Optional[str] = _indexed(100)
    resource_type: Optional[str] = _indexed(50)
    resource_id: Optional[str] = _indexed()
    timestamp: Optional[str] = _indexed(32)
    created_at: Optional[str] = _indexed(32)
    updated_at: Optional[str] = Field(default=None, sa_column=sa.Column(sa.String(32), nullable=True))

    @classmethod
    def columns_for(cls, doc: dict[str, Any]) -> dict[str, Any]:
        """Index column values extracted from a document."""
        row: dict[str, Any] = {}
        for key, column in INDEXED_KEYS.items():
            if column == "id":
                continue
            value = doc.get(key)
            row[column] = value if isinstance(value, str) else None
        row["updated_at"] = doc.get("updatedAt") if isinstance(doc.get("updatedAt"), str) else None
        return row
