"""
User, session and bootstrap schemas.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import EmailStr, Field

from .common import CamelModel, Document, Role


class User(Document):
    type: Literal["user"] = "user"
    email: str
    name: str = ""
    password_hash: str
    roles: list[Role] = Field(default_factory=lambda: [Role.CLIENT])
    org_id: Optional[str] = None
    verified: bool = False
    active: bool = True
    last_login: Optional[str] = None


class UserResponse(CamelModel):
    """Public view of a user; never carries the password hash."""

    id: str
    email: str
    name: str
    roles: list[Role]
    org_id: Optional[str] = None
    verified: bool
    active: bool

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            roles=user.roles,
            org_id=user.org_id,
            verified=user.verified,
            active=user.active,
        )


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(CamelModel):
    user: UserResponse
    access_token: str
    refresh_token: str
    expires_in: int


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class BootstrapRequest(CamelModel):
    org_name: str = Field(..., min_length=3, max_length=100)
    admin_email: EmailStr
    admin_password: str = Field(..., min_length=8, max_length=128)
    admin_name: str = Field(..., min_length=1, max_length=100)


class BootstrapStatus(CamelModel):
    bootstrapped: bool
    org_id: Optional[str] = None
    completed_at: Optional[str] = None
