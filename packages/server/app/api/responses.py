"""Response helpers shared by the routers."""

from __future__ import annotations

from typing import Iterable

from scheduleright_shared.schemas.common import Document


def listing(items: Iterable[Document]) -> dict:
    """The ``{data, total}`` envelope used by every list endpoint."""
    data = [item.to_doc() for item in items]
    return {"data": data, "total": len(data)}
