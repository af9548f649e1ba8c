"""Tests for the volunteer roster and shift assignment."""

from __future__ import annotations

import pytest

from app.core.errors import ConflictError, NotFoundError
from app.services import volunteers as volunteer_service
from scheduleright_shared.schemas.volunteers import ShiftCreate, VolunteerCreate


@pytest.fixture
async def volunteers(store, org):
    return [
        await volunteer_service.create_volunteer(
            store, org.id, VolunteerCreate(name=name, email=f"{name.lower()}@example.org")
        )
        for name in ("Vera", "Victor", "Viola")
    ]


@pytest.fixture
async def shift(store, org, site):
    return await volunteer_service.create_shift(
        store,
        org.id,
        ShiftCreate(
            title="Sorting",
            site_id=site.id,
            start="2030-01-07T09:00:00Z",
            end="2030-01-07T12:00:00Z",
            capacity=2,
        ),
    )


class TestShiftAssignment:
    async def test_assign_until_full(self, store, org, shift, volunteers):
        first, second, third = volunteers
        await volunteer_service.assign_volunteer(store, org.id, shift.id, first.id)
        updated = await volunteer_service.assign_volunteer(store, org.id, shift.id, second.id)
        assert updated.assigned_volunteer_ids == [first.id, second.id]

        with pytest.raises(ConflictError) as exc_info:
            await volunteer_service.assign_volunteer(store, org.id, shift.id, third.id)
        assert exc_info.value.code == "SHIFT_FULL"

    async def test_duplicate_assignment_is_a_no_op(self, store, org, shift, volunteers):
        await volunteer_service.assign_volunteer(store, org.id, shift.id, volunteers[0].id)
        again = await volunteer_service.assign_volunteer(store, org.id, shift.id, volunteers[0].id)
        assert again.assigned_volunteer_ids == [volunteers[0].id]

    async def test_unknown_shift_and_volunteer(self, store, org, shift, volunteers):
        with pytest.raises(NotFoundError) as exc_info:
            await volunteer_service.assign_volunteer(store, org.id, "shift:missing", volunteers[0].id)
        assert exc_info.value.code == "SHIFT_NOT_FOUND"

        with pytest.raises(NotFoundError) as exc_info:
            await volunteer_service.assign_volunteer(store, org.id, shift.id, "volunteer:missing")
        assert exc_info.value.code == "VOLUNTEER_NOT_FOUND"

    async def test_other_org_volunteer_is_not_found(self, store, org, other_org, shift):
        outsider = await volunteer_service.create_volunteer(
            store, other_org.id, VolunteerCreate(name="Otto", email="otto@example.org")
        )
        with pytest.raises(NotFoundError):
            await volunteer_service.assign_volunteer(store, org.id, shift.id, outsider.id)

    async def test_shift_on_foreign_site(self, store, org, other_site):
        with pytest.raises(NotFoundError):
            await volunteer_service.create_shift(
                store,
                org.id,
                ShiftCreate(
                    title="Sorting",
                    site_id=other_site.id,
                    start="2030-01-07T09:00:00Z",
                    end="2030-01-07T12:00:00Z",
                ),
            )


class TestVolunteerEndpoints:
    async def test_roster(self, client, staff_headers):
        created = await client.post(
            "/api/v1/volunteers",
            json={"name": "Vera", "email": "Vera@Example.org", "skills": ["driving"]},
            headers=staff_headers,
        )
        assert created.status_code == 201
        assert created.json()["email"] == "vera@example.org"

        listed = await client.get("/api/v1/volunteers", headers=staff_headers)
        assert listed.json()["total"] == 1

    async def test_clients_cannot_see_roster(self, client, client_headers):
        resp = await client.get("/api/v1/volunteers", headers=client_headers)
        assert resp.status_code == 403

    async def test_shift_flow(self, client, site, staff_headers, volunteers):
        created = await client.post(
            "/api/v1/shifts",
            json={
                "title": "Delivery",
                "siteId": site.id,
                "start": "2030-01-08T09:00:00Z",
                "end": "2030-01-08T11:00:00Z",
                "capacity": 1,
            },
            headers=staff_headers,
        )
        assert created.status_code == 201
        shift_id = created.json()["_id"]

        assign_url = f"/api/v1/shifts/{shift_id}/assign"
        ok = await client.post(assign_url, json={"volunteerId": volunteers[0].id}, headers=staff_headers)
        assert ok.status_code == 200
        assert ok.json()["assignedVolunteerIds"] == [volunteers[0].id]

        full = await client.post(assign_url, json={"volunteerId": volunteers[1].id}, headers=staff_headers)
        assert full.status_code == 409
        assert full.json()["code"] == "SHIFT_FULL"

        listed = await client.get("/api/v1/shifts", params={"siteId": site.id}, headers=staff_headers)
        assert listed.json()["total"] == 1

    async def test_shift_end_before_start(self, client, site, staff_headers):
        resp = await client.post(
            "/api/v1/shifts",
            json={
                "title": "Backwards",
                "siteId": site.id,
                "start": "2030-01-08T11:00:00Z",
                "end": "2030-01-08T09:00:00Z",
            },
            headers=staff_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"
