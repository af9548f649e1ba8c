#!/usr/bin/env python3
"""Seed a development store with a demo organization, site, users, slots and an embed config.

Usage:
    SR_DB_PROVIDER=couchdb python scripts/seed_dev_data.py

Uses the same SR_* settings as the server. Fixed ids keep re-runs from
duplicating documents.
"""

import asyncio
from datetime import date, timedelta

from app.core.auth import hash_password
from app.core.config import get_settings
from app.core.errors import DocumentConflictError
from app.db.store import create_document_store
from scheduleright_shared.schemas.availability import AvailabilitySlot, Recurrence
from scheduleright_shared.schemas.common import Role
from scheduleright_shared.schemas.embeds import EmbedConfig
from scheduleright_shared.schemas.organizations import Organization, OrgSettings, Site
from scheduleright_shared.schemas.users import User

ORG_ID = "org:demo"
SITE_ID = "site:demo-main"
ADMIN_ID = "user:demo-admin"
STAFF_ID = "user:demo-staff"
EMBED_ID = "embed_config:demo"
EMBED_TOKEN = "0" * 31 + "1"

PASSWORD = "password123"


def build_documents() -> list[dict]:
    today = date.today()
    docs = [
        Organization(
            id=ORG_ID,
            name="Harbor Food Bank",
            tenant_id="tenant:00000000-0000-0000-0000-000000000001",
            settings=OrgSettings(timezone="America/New_York"),
        ),
        Site(
            id=SITE_ID,
            org_id=ORG_ID,
            name="Main Street Pantry",
            address="12 Main Street",
            phone="+15555550100",
            timezone="America/New_York",
        ),
        User(
            id=ADMIN_ID,
            email="admin@harbor.example.org",
            name="Alice Admin",
            password_hash=hash_password(PASSWORD),
            roles=[Role.ADMIN, Role.STAFF],
            org_id=ORG_ID,
            verified=True,
        ),
        User(
            id=STAFF_ID,
            email="staff@harbor.example.org",
            name="Sam Staff",
            password_hash=hash_password(PASSWORD),
            roles=[Role.STAFF],
            org_id=ORG_ID,
            verified=True,
        ),
        EmbedConfig(
            id=EMBED_ID,
            org_id=ORG_ID,
            site_id=SITE_ID,
            name="Website widget",
            token=EMBED_TOKEN,
            allow_domains=["localhost"],
            created_by=ADMIN_ID,
        ),
    ]

    # Weekday morning pickups plus a few one-off Saturday sessions.
    for day_of_week in range(1, 6):
        docs.append(
            AvailabilitySlot(
                id=f"slot:demo-weekly-{day_of_week}",
                site_id=SITE_ID,
                org_id=ORG_ID,
                day_of_week=day_of_week,
                start_time="09:00",
                end_time="10:00",
                recurrence=Recurrence.WEEKLY,
                capacity=5,
                duration_minutes=60,
                title="Morning pickup",
            )
        )
    for offset in range(3):
        saturday = today + timedelta(days=(5 - today.weekday()) % 7 + 7 * offset)
        docs.append(
            AvailabilitySlot(
                id=f"slot:demo-saturday-{offset}",
                site_id=SITE_ID,
                org_id=ORG_ID,
                start_time="11:00",
                end_time="13:00",
                recurrence=Recurrence.ONCE,
                specific_date=saturday.isoformat(),
                capacity=10,
                duration_minutes=120,
                title="Saturday distribution",
            )
        )
    return [doc.to_doc() for doc in docs]


async def seed():
    store = create_document_store(get_settings())
    try:
        await store.ensure_database()
        for doc in build_documents():
            try:
                await store.insert(doc)
            except DocumentConflictError:
                print(f"  {doc['type']:<14} {doc['_id']} (exists)")
                continue
            print(f"  {doc['type']:<14} {doc['_id']}")
    finally:
        await store.close()

    print()
    print(f"Seeded demo org {ORG_ID}.")
    print(f"  Login: admin@harbor.example.org / {PASSWORD}")
    print(f"  Embed token: {EMBED_TOKEN}")


if __name__ == "__main__":
    asyncio.run(seed())
