"""
User service: lookup, creation and credential checks.
"""

from __future__ import annotations

from typing import Iterable, Optional

import structlog

from app.core.auth import hash_password, verify_password
from app.core.errors import ConflictError, DocumentNotFoundError, NotFoundError, UnauthorizedError
from app.db.base import DocumentStore, FindQuery
from scheduleright_shared.schemas.common import DocType, Role, new_doc_id, utcnow_iso
from scheduleright_shared.schemas.users import User

log = structlog.get_logger()


async def get_user_by_email(store: DocumentStore, email: str) -> Optional[User]:
    result = await store.find(
        FindQuery(selector={"type": DocType.USER.value, "email": email.lower()}, limit=1)
    )
    if not result.docs:
        return None
    return User.model_validate(result.docs[0])


async def get_user(store: DocumentStore, user_id: str) -> Optional[User]:
    try:
        doc = await store.get(user_id)
    except DocumentNotFoundError:
        return None
    if doc.get("type") != DocType.USER.value:
        return None
    return User.model_validate(doc)


async def get_user_or_404(store: DocumentStore, user_id: str) -> User:
    user = await get_user(store, user_id)
    if user is None:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return user


async def create_user(
    store: DocumentStore,
    *,
    email: str,
    password: str,
    name: str,
    roles: Iterable[Role],
    org_id: Optional[str],
    verified: bool = False,
) -> User:
    email = email.lower()
    if await get_user_by_email(store, email) is not None:
        raise ConflictError("A user with this email already exists", code="EMAIL_EXISTS")
    user = User(
        id=new_doc_id("user"),
        email=email,
        name=name,
        password_hash=hash_password(password),
        roles=list(roles),
        org_id=org_id,
        verified=verified,
        active=True,
    )
    result = await store.insert(user.to_doc())
    user.rev = result.rev
    log.info("user.created", user_id=user.id, org_id=org_id)
    return user


async def authenticate(store: DocumentStore, email: str, password: str) -> User:
    """Check credentials. Unknown email, wrong password and inactive users look the same."""
    user = await get_user_by_email(store, email)
    if user is None or not user.active or not verify_password(password, user.password_hash):
        log.info("auth.login_failed", email=email.lower())
        raise UnauthorizedError("Invalid email or password", code="INVALID_CREDENTIALS")
    return user


async def record_login(store: DocumentStore, user: User) -> User:
    user.last_login = utcnow_iso()
    user.touch()
    result = await store.insert(user.to_doc())
    user.rev = result.rev
    return user
