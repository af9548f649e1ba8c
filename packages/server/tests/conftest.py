"""
Shared fixtures: an app wired to the in-memory document store, seeded
org/site documents, and bearer headers per role.
"""

from __future__ import annotations

import os

# Settings are cached on first use; these must be set before app imports.
os.environ.setdefault("SR_ENVIRONMENT", "test")
os.environ.setdefault("SR_DB_PROVIDER", "memory")
os.environ.setdefault("SR_BCRYPT_ROUNDS", "4")
os.environ.setdefault("SR_SECRET_KEY", "test-secret-key-0123456789abcdef0123456789abcdef")
os.environ.setdefault("SR_CACHE_BACKEND", "memory")

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.auth import create_access_token
from app.core.redis import MemoryCounterStore, set_counter_store
from app.db.memory import MemoryDocumentStore
from app.main import create_app
from app.services.availability import create_slot
from app.services.organizations import create_org, create_site
from scheduleright_shared.schemas.availability import SlotCreateRequest
from scheduleright_shared.schemas.common import Role
from scheduleright_shared.schemas.organizations import OrgCreateRequest, SiteCreateRequest


def bearer(user_id: str, org_id: str | None, roles: list[Role], email: str = "") -> dict:
    token = create_access_token(user_id, email or f"{user_id.split(':')[-1]}@example.org", org_id, roles)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def counter_store():
    store = MemoryCounterStore()
    set_counter_store(store)
    yield store
    set_counter_store(None)


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def app(store):
    return create_app(store=store)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def org(store):
    return await create_org(store, OrgCreateRequest(name="Harbor Food Bank"))


@pytest.fixture
async def other_org(store):
    return await create_org(store, OrgCreateRequest(name="Hillside Shelter"))


@pytest.fixture
async def site(store, org):
    return await create_site(store, org.id, SiteCreateRequest(name="Main Street Pantry"))


@pytest.fixture
async def other_site(store, other_org):
    return await create_site(store, other_org.id, SiteCreateRequest(name="Hillside Kitchen"))


@pytest.fixture
async def slot(store, org, site):
    """A one-time slot with a single place."""
    return await create_slot(
        store,
        org.id,
        SlotCreateRequest(
            site_id=site.id,
            start_time="10:00",
            end_time="11:00",
            recurrence="once",
            specific_date="2030-01-07",
            capacity=1,
            duration_minutes=60,
        ),
    )


@pytest.fixture
def admin_headers(org):
    return bearer("user:admin", org.id, [Role.ADMIN, Role.STAFF], "admin@example.org")


@pytest.fixture
def staff_headers(org):
    return bearer("user:staff", org.id, [Role.STAFF], "staff@example.org")


@pytest.fixture
def client_headers(org):
    return bearer("user:client", org.id, [Role.CLIENT], "client@example.org")


@pytest.fixture
def other_admin_headers(other_org):
    return bearer("user:other-admin", other_org.id, [Role.ADMIN, Role.STAFF], "other@example.org")
