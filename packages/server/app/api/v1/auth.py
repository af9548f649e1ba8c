"""
Authentication endpoints.

POST /api/v1/auth/login    — Email/password login, sets session cookies
POST /api/v1/auth/refresh  — Rotate the refresh token, issue a new access token
POST /api/v1/auth/logout   — Revoke tokens and clear cookies
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Body, Depends, Request, Response

from app.core.auth import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    REFRESH_COOKIE_PATH,
    create_access_token,
    create_refresh_token,
    decode_token,
    is_token_revoked,
    revoke_token,
)
from app.core.config import get_settings
from app.core.errors import UnauthorizedError
from app.db.base import DocumentStore
from app.db.store import get_store
from app.services import users as user_service
from app.services.audit import record_audit_event
from scheduleright_shared.schemas.audit import AuditActions
from scheduleright_shared.schemas.users import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    User,
    UserResponse,
)

log = structlog.get_logger()
router = APIRouter()


def _set_session_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    """Set the access and refresh token cookies on a response."""
    settings = get_settings()
    common = {"httponly": True, "secure": settings.is_production, "samesite": "lax"}
    response.set_cookie(
        key=ACCESS_COOKIE,
        value=access_token,
        path="/",
        max_age=settings.access_token_minutes * 60,
        **common,
    )
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh_token,
        path=REFRESH_COOKIE_PATH,
        max_age=settings.refresh_token_days * 24 * 3600,
        **common,
    )


def _issue_tokens(response: Response, user: User) -> LoginResponse:
    access_token = create_access_token(user.id, user.email, user.org_id, user.roles)
    refresh_token = create_refresh_token(user.id)
    _set_session_cookies(response, access_token, refresh_token)
    return LoginResponse(
        user=UserResponse.from_user(user),
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=get_settings().access_token_minutes * 60,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    store: DocumentStore = Depends(get_store),
):
    """Authenticate with email/password and receive a token pair."""
    user = await user_service.authenticate(store, str(body.email), body.password)
    user = await user_service.record_login(store, user)
    result = _issue_tokens(response, user)

    await record_audit_event(
        store,
        action=AuditActions.USER_LOGIN,
        user_id=user.id,
        org_id=user.org_id,
        resource_type="user",
        resource_id=user.id,
        request=request,
    )
    log.info("auth.login_success", user_id=user.id)
    return result


@router.post("/refresh", response_model=LoginResponse)
async def refresh_session(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = Body(None),
    store: DocumentStore = Depends(get_store),
):
    """Exchange a refresh token (body or cookie) for a new token pair."""
    token = (body.refresh_token if body else None) or request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise UnauthorizedError("Refresh token required", code="MISSING_TOKEN")

    payload = decode_token(token, "refresh")
    if await is_token_revoked(payload):
        raise UnauthorizedError("Refresh token has been revoked", code="INVALID_TOKEN")

    user = await user_service.get_user(store, payload["userId"])
    if user is None or not user.active:
        raise UnauthorizedError("User no longer active", code="INVALID_TOKEN")

    # Refresh tokens are single use.
    await revoke_token(payload)
    return _issue_tokens(response, user)


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    store: DocumentStore = Depends(get_store),
):
    """Revoke the presented tokens and clear cookies."""
    user_id = None
    org_id = None
    authorization = request.headers.get("Authorization", "")
    access = authorization[7:].strip() if authorization.startswith("Bearer ") else None
    access = access or request.cookies.get(ACCESS_COOKIE)

    for token, token_type in ((access, "access"), (request.cookies.get(REFRESH_COOKIE), "refresh")):
        if not token:
            continue
        try:
            payload = decode_token(token, token_type)
        except UnauthorizedError:
            continue
        await revoke_token(payload)
        if token_type == "access":
            user_id = payload.get("userId")
            org_id = payload.get("orgId")

    response.delete_cookie(ACCESS_COOKIE, path="/")
    response.delete_cookie(REFRESH_COOKIE, path=REFRESH_COOKIE_PATH)

    if user_id:
        await record_audit_event(
            store,
            action=AuditActions.USER_LOGOUT,
            user_id=user_id,
            org_id=org_id,
            resource_type="user",
            resource_id=user_id,
            request=request,
        )
    return {"message": "Logged out"}
