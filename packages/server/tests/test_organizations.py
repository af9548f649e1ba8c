"""
Integration tests for Organization and Site endpoints.

Tests cover:
- Org create/list/get/update, admin-only where required
- Settings deep merge and validation
- Tenant isolation on {orgId} routes
- Site creation and listing
"""

from __future__ import annotations

from app.services import organizations as org_service
from scheduleright_shared.schemas.organizations import OrgUpdateRequest


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class TestOrgService:
    async def test_create_assigns_tenant(self, org):
        assert org.id.startswith("org:")
        assert org.tenant_id.startswith("tenant:")
        assert org.settings.timezone == "UTC"

    async def test_update_merges_settings(self, store, org):
        await org_service.update_org(
            store, org.id, OrgUpdateRequest(settings={"branding": {"logoUrl": "logo.png"}})
        )
        updated = await org_service.update_org(
            store,
            org.id,
            OrgUpdateRequest(name="Harbor Food Bank East", settings={"branding": {"primaryColor": "#00aa00"}}),
        )
        assert updated.name == "Harbor Food Bank East"
        assert updated.settings.branding.logo_url == "logo.png"
        assert updated.settings.branding.primary_color == "#00aa00"
        assert (await store.get(org.id))["settings"]["branding"]["logoUrl"] == "logo.png"

    async def test_list_sites_only_for_org(self, store, org, site, other_site):
        sites = await org_service.list_sites(store, org.id)
        assert [s.id for s in sites] == [site.id]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestOrgEndpoints:
    async def test_create_and_list(self, client, admin_headers):
        resp = await client.post(
            "/api/v1/orgs", json={"name": "New Shelter"}, headers=admin_headers
        )
        assert resp.status_code == 201
        assert resp.json()["name"] == "New Shelter"

        listed = await client.get("/api/v1/orgs", headers=admin_headers)
        assert resp.json()["_id"] in {o["_id"] for o in listed.json()["data"]}

    async def test_staff_cannot_create(self, client, staff_headers):
        resp = await client.post("/api/v1/orgs", json={"name": "Nope Org"}, headers=staff_headers)
        assert resp.status_code == 403

    async def test_name_too_short(self, client, admin_headers):
        resp = await client.post("/api/v1/orgs", json={"name": "ab"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"

    async def test_get_own_org(self, client, org, client_headers):
        resp = await client.get(f"/api/v1/orgs/{org.id}", headers=client_headers)
        assert resp.status_code == 200
        assert resp.json()["name"] == "Harbor Food Bank"

    async def test_cross_tenant_get_is_forbidden(self, client, org, other_admin_headers):
        resp = await client.get(f"/api/v1/orgs/{org.id}", headers=other_admin_headers)
        assert resp.status_code == 403

    async def test_update(self, client, org, admin_headers):
        resp = await client.put(
            f"/api/v1/orgs/{org.id}",
            json={"settings": {"timezone": "America/Chicago"}},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["settings"]["timezone"] == "America/Chicago"

    async def test_update_invalid_settings(self, client, org, admin_headers):
        resp = await client.put(
            f"/api/v1/orgs/{org.id}",
            json={"settings": {"branding": {"primaryColor": "green"}}},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"

    async def test_cross_tenant_update_is_forbidden(self, client, org, other_admin_headers):
        resp = await client.put(
            f"/api/v1/orgs/{org.id}", json={"name": "Taken Over"}, headers=other_admin_headers
        )
        assert resp.status_code == 403


class TestSiteEndpoints:
    async def test_create_and_list_sites(self, client, org, staff_headers):
        created = await client.post(
            f"/api/v1/orgs/{org.id}/sites",
            json={"name": "Riverside Pantry", "address": "1 River Rd"},
            headers=staff_headers,
        )
        assert created.status_code == 201
        assert created.json()["orgId"] == org.id

        listed = await client.get(f"/api/v1/orgs/{org.id}/sites", headers=staff_headers)
        assert listed.status_code == 200
        assert [s["name"] for s in listed.json()["data"]] == ["Riverside Pantry"]

    async def test_client_cannot_list_sites(self, client, org, client_headers):
        resp = await client.get(f"/api/v1/orgs/{org.id}/sites", headers=client_headers)
        assert resp.status_code == 403

    async def test_other_org_sites_forbidden(self, client, other_org, staff_headers):
        resp = await client.post(
            f"/api/v1/orgs/{other_org.id}/sites", json={"name": "Sneaky Site"}, headers=staff_headers
        )
        assert resp.status_code == 403

    async def test_unknown_site_timezone(self, client, org, staff_headers):
        resp = await client.post(
            f"/api/v1/orgs/{org.id}/sites",
            json={"name": "Olympus Pantry", "timezone": "Mars/Olympus_Mons"},
            headers=staff_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"
