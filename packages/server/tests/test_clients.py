"""Tests for the client directory built from an org's bookings."""

from __future__ import annotations

import pytest

from app.services import availability as availability_service
from app.services import bookings as booking_service
from app.services import clients as client_service
from scheduleright_shared.schemas.availability import SlotCreateRequest
from scheduleright_shared.schemas.bookings import Booking, BookingStatus, ClientInfo

CASEY = ClientInfo(client_name="Casey Client", client_email="Casey@Example.org")
JORDAN = ClientInfo(client_name="Jordan Guest", client_email="jordan@example.org", client_phone="+15555550199")


def _booking(email: str, start: str, status: BookingStatus, **extra) -> Booking:
    return Booking(
        id=f"booking:{start}",
        site_id="site:1",
        org_id="org:1",
        slot_id="slot:1",
        client_name=extra.pop("client_name", "Casey"),
        client_email=email,
        start_time=start,
        end_time=start,
        duration_minutes=30,
        status=status,
        **extra,
    )


async def _slot(store, site, day: str):
    return await availability_service.create_slot(
        store,
        site.org_id,
        SlotCreateRequest(
            site_id=site.id,
            start_time="09:00",
            end_time="12:00",
            recurrence="once",
            specific_date=day,
            capacity=5,
            duration_minutes=30,
        ),
    )


async def _book(store, slot, client: ClientInfo) -> Booking:
    return await booking_service.create_booking(
        store, slot.org_id, slot.site_id, slot.id, client, slot
    )


@pytest.fixture
async def directory(store, site, other_site):
    monday = await _slot(store, site, "2030-01-07")
    tuesday = await _slot(store, site, "2030-01-08")
    elsewhere = await _slot(store, other_site, "2030-01-09")

    await _book(store, monday, CASEY)
    cancelled = await _book(store, tuesday, CASEY)
    await booking_service.cancel_booking(store, cancelled)
    jordan = await _book(store, monday, JORDAN)
    await booking_service.confirm_booking(store, jordan)
    await booking_service.complete_booking(store, jordan)
    # Same client, different tenant.
    await _book(store, elsewhere, CASEY)


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

class TestBuildSummaries:
    def test_groups_by_email_and_counts_outcomes(self):
        summaries = client_service.build_client_summaries(
            [
                _booking("casey@example.org", "2030-01-07T10:00:00Z", BookingStatus.PENDING),
                _booking("CASEY@example.org", "2030-02-01T10:00:00Z", BookingStatus.NO_SHOW, client_phone="+15555550123"),
                _booking("casey@example.org", "2029-12-01T10:00:00Z", BookingStatus.COMPLETED),
                _booking("casey@example.org", "2029-11-01T10:00:00Z", BookingStatus.CANCELLED),
            ]
        )
        assert len(summaries) == 1
        casey = summaries[0]
        assert casey.email == "casey@example.org"
        assert casey.phone == "+15555550123"
        assert casey.total_bookings == 4
        assert casey.last_booking_at == "2030-02-01T10:00:00Z"
        assert (casey.upcoming_count, casey.completed_count, casey.cancelled_count) == (2, 1, 1)

    def test_most_recent_client_first(self):
        summaries = client_service.build_client_summaries(
            [
                _booking("early@example.org", "2030-01-01T10:00:00Z", BookingStatus.PENDING),
                _booking("late@example.org", "2030-03-01T10:00:00Z", BookingStatus.PENDING),
            ]
        )
        assert [s.email for s in summaries] == ["late@example.org", "early@example.org"]

    def test_empty(self):
        assert client_service.build_client_summaries([]) == []


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestClientEndpoints:
    async def test_list_is_org_scoped(self, client, directory, staff_headers):
        resp = await client.get("/api/v1/clients", headers=staff_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 2
        casey, jordan = body["data"]
        assert casey == {
            "email": "casey@example.org",
            "name": "Casey Client",
            "phone": None,
            "totalBookings": 2,
            "lastBookingAt": "2030-01-08T09:00:00Z",
            "upcomingCount": 1,
            "completedCount": 0,
            "cancelledCount": 1,
        }
        assert jordan["email"] == "jordan@example.org"
        assert jordan["completedCount"] == 1

    async def test_detail(self, client, directory, admin_headers):
        resp = await client.get("/api/v1/clients/CASEY%40example.org", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["client"]["totalBookings"] == 2
        assert [b["startTime"] for b in body["bookings"]] == [
            "2030-01-08T09:00:00Z",
            "2030-01-07T09:00:00Z",
        ]

    async def test_unknown_client(self, client, directory, staff_headers):
        resp = await client.get("/api/v1/clients/nobody@example.org", headers=staff_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "CLIENT_NOT_FOUND"

    async def test_other_org_sees_only_its_own(self, client, directory, other_admin_headers):
        resp = await client.get("/api/v1/clients", headers=other_admin_headers)
        assert resp.json()["total"] == 1
        assert resp.json()["data"][0]["totalBookings"] == 1

        resp = await client.get("/api/v1/clients/jordan@example.org", headers=other_admin_headers)
        assert resp.status_code == 404

    async def test_clients_cannot_browse(self, client, directory, client_headers):
        resp = await client.get("/api/v1/clients", headers=client_headers)
        assert resp.status_code == 403
