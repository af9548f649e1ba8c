"""
Authentication and Authorization for ScheduleRight.

Supports:
- Email/Password login with bcrypt hashes
- JWT access (short-lived) and refresh (long-lived) tokens
- Tokens from the Authorization header or the accessToken cookie
- Refresh token revocation via the counter store (Redis in production)
- Role-based authorization dependencies and org-scoping
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader

from app.core.config import get_settings
from app.core.errors import ForbiddenError, UnauthorizedError
from app.core.redis import get_counter_store
from scheduleright_shared.schemas.common import STAFF_ROLES, Role

log = structlog.get_logger()

auth_header = APIKeyHeader(name="Authorization", auto_error=False)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"
REFRESH_COOKIE_PATH = "/api/v1/auth"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt (cost factor from settings, 12 by default)."""
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Not a bcrypt hash.
        return False


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def _encode(payload: dict, expires_delta: timedelta) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        **payload,
        "iss": settings.jwt_issuer,
        "iat": now,
        "exp": now + expires_delta,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(
    user_id: str,
    email: str,
    org_id: Optional[str],
    roles: Iterable[str],
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token."""
    settings = get_settings()
    return _encode(
        {
            "sub": user_id,
            "userId": user_id,
            "email": email,
            "orgId": org_id,
            "roles": [str(getattr(r, "value", r)) for r in roles],
            "type": "access",
        },
        expires_delta or timedelta(minutes=settings.access_token_minutes),
    )


def create_refresh_token(user_id: str, *, expires_delta: timedelta | None = None) -> str:
    """Create a signed refresh token."""
    settings = get_settings()
    return _encode(
        {"sub": user_id, "userId": user_id, "type": "refresh"},
        expires_delta or timedelta(days=settings.refresh_token_days),
    )


def decode_token(token: str, expected_type: str = "access") -> dict:
    """Decode and verify a JWT. Raises UnauthorizedError on failure."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired", code="INVALID_TOKEN")
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid token", code="INVALID_TOKEN")
    if payload.get("type") != expected_type:
        raise UnauthorizedError("Invalid token type", code="INVALID_TOKEN")
    return payload


# ---------------------------------------------------------------------------
# Revocation
# ---------------------------------------------------------------------------

def _token_ttl(payload: dict) -> int:
    exp = payload.get("exp")
    if not exp:
        return 60
    return max(1, int(exp - datetime.now(timezone.utc).timestamp()))


async def revoke_token(payload: dict) -> None:
    """Add a token's jti to the revocation list until it would expire anyway."""
    jti = payload.get("jti")
    if jti:
        await get_counter_store().set_flag(f"jwt:revoked:{jti}", _token_ttl(payload))


async def is_token_revoked(payload: dict) -> bool:
    jti = payload.get("jti")
    return bool(jti) and await get_counter_store().has_flag(f"jwt:revoked:{jti}")


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

class CurrentUser:
    """Container for the authenticated principal, taken from token claims."""

    def __init__(self, user_id: str, email: str, org_id: Optional[str], roles: list[str]):
        self.user_id = user_id
        self.email = email
        self.org_id = org_id
        self.roles = roles

    @classmethod
    def from_claims(cls, claims: dict) -> "CurrentUser":
        return cls(
            user_id=claims["userId"],
            email=claims.get("email", ""),
            org_id=claims.get("orgId"),
            roles=list(claims.get("roles", [])),
        )

    @property
    def is_staff(self) -> bool:
        return bool(STAFF_ROLES.intersection(self.roles))

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN.value in self.roles


def extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    return request.cookies.get(ACCESS_COOKIE)


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Depends(auth_header),
) -> CurrentUser:
    """Main authentication dependency."""
    token = extract_token(request, authorization)
    if not token:
        raise UnauthorizedError("Authentication required", code="MISSING_TOKEN")
    claims = decode_token(token, "access")
    if await is_token_revoked(claims):
        raise UnauthorizedError("Token has been revoked", code="INVALID_TOKEN")
    user = CurrentUser.from_claims(claims)
    request.state.user = user
    structlog.contextvars.bind_contextvars(user_id=user.user_id)
    return user


# ---------------------------------------------------------------------------
# Authorization dependencies (role checks)
# ---------------------------------------------------------------------------

async def require_auth(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Any authenticated user can access this endpoint."""
    return user


async def require_staff(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Requires STAFF or ADMIN role."""
    if not user.is_staff:
        raise ForbiddenError("Staff access required")
    return user


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Requires ADMIN role."""
    if not user.is_admin:
        raise ForbiddenError("Administrator access required")
    return user


def require_org_access(user: CurrentUser, org_id: str) -> None:
    """Tenancy check for routes that carry an orgId in the path."""
    if user.org_id != org_id:
        log.warning("auth.cross_tenant_denied", user_id=user.user_id, org_id=org_id)
        raise ForbiddenError("Access to this organization is not allowed")


def require_org_id(user: CurrentUser) -> str:
    if not user.org_id:
        raise ForbiddenError("Organization not determined", code="INVALID_ORG")
    return user.org_id
