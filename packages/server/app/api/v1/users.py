"""
User endpoints.

GET /api/v1/users/me — Profile of the authenticated user
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth import CurrentUser, require_auth
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import users as user_service
from scheduleright_shared.schemas.users import UserResponse

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(
    user: CurrentUser = Depends(require_auth),
    store: DocumentStore = Depends(get_store),
):
    """Return the current user's profile (never the password hash)."""
    record = await user_service.get_user_or_404(store, user.user_id)
    return UserResponse.from_user(record)
