"""
Script to create an admin user with a password for local testing.

Uses the document store named by SR_DB_PROVIDER. The user is attached to
``--org-id`` when given, otherwise to a new "Default Organization".
"""

import argparse
import asyncio
from typing import Optional

from app.core.config import get_settings
from app.core.errors import ConflictError
from app.db.store import create_document_store
from app.services.organizations import create_org, get_org_or_404
from app.services.users import create_user
from scheduleright_shared.schemas.common import Role
from scheduleright_shared.schemas.organizations import OrgCreateRequest


async def create_admin(email: str, password: str, name: str, org_id: Optional[str]) -> None:
    store = create_document_store(get_settings())
    try:
        await store.ensure_database()
        if org_id:
            org = await get_org_or_404(store, org_id)
        else:
            org = await create_org(store, OrgCreateRequest(name="Default Organization"))
            print(f"Created organization {org.id}.")

        try:
            user = await create_user(
                store,
                email=email,
                password=password,
                name=name,
                roles=[Role.ADMIN, Role.STAFF],
                org_id=org.id,
                verified=True,
            )
        except ConflictError:
            print(f"User {email} already exists.")
            return
        print(f"Created admin {user.email} ({user.id}) in {org.name}.")
    finally:
        await store.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a local admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--name", default="Local Admin", help="Display name")
    parser.add_argument("--org-id", default=None, help="Existing organization id")
    args = parser.parse_args()

    asyncio.run(create_admin(args.email, args.password, args.name, args.org_id))


if __name__ == "__main__":
    main()
