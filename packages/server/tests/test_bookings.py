"""
Tests for bookings: the capacity guarantee, lifecycle transitions and who
may see or change a booking.
"""

from __future__ import annotations

import asyncio
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from app.core.errors import ConflictError, NotFoundError, SlotUnavailableError, ValidationError
from app.services import availability as availability_service
from app.services import bookings as booking_service
from app.services.organizations import create_site
from scheduleright_shared.schemas.availability import SlotCreateRequest
from scheduleright_shared.schemas.bookings import BookingStatus, ClientInfo
from scheduleright_shared.schemas.common import Role
from scheduleright_shared.schemas.organizations import SiteCreateRequest

from conftest import bearer

CLIENT = ClientInfo(client_name="Casey Client", client_email="Casey@Example.org", client_phone="+15555550123")


def booking_body(slot_id: str, **extra) -> dict:
    return {
        "slotId": slot_id,
        "clientName": "Casey Client",
        "clientEmail": "client@example.org",
        **extra,
    }


async def book(store, slot, client: ClientInfo = CLIENT, **kwargs):
    return await booking_service.create_booking(
        store, slot.org_id, slot.site_id, slot.id, client, slot, **kwargs
    )


# ---------------------------------------------------------------------------
# Occurrence dates
# ---------------------------------------------------------------------------

class TestOccurrence:
    @pytest.fixture
    async def weekly(self, store, org, site):
        # 2030-01-07 is a Monday (dayOfWeek 1).
        return await availability_service.create_slot(
            store,
            org.id,
            SlotCreateRequest(
                site_id=site.id,
                day_of_week=1,
                start_time="14:30",
                end_time="15:00",
                recurrence="weekly",
                capacity=5,
                duration_minutes=30,
            ),
        )

    async def test_once_slot_uses_its_own_date(self, store, slot):
        booking = await book(store, slot, booking_date=date(2031, 5, 5))
        assert booking.start_time == "2030-01-07T10:00:00Z"
        assert booking.end_time == "2030-01-07T11:00:00Z"
        assert booking.duration_minutes == 60

    async def test_weekly_slot_needs_a_date(self, store, weekly):
        with pytest.raises(ValidationError, match="date is required"):
            await book(store, weekly)

    async def test_weekly_slot_date_must_match_weekday(self, store, weekly):
        with pytest.raises(ValidationError, match="day of week"):
            await book(store, weekly, booking_date=date(2030, 1, 8))

    async def test_weekly_slot_booking_window(self, store, weekly):
        booking = await book(store, weekly, booking_date=date(2030, 1, 14))
        assert booking.start_time == "2030-01-14T14:30:00Z"
        assert booking.end_time == "2030-01-14T15:00:00Z"

    async def test_slot_times_are_site_local(self, store, org):
        eastern = await create_site(
            store, org.id, SiteCreateRequest(name="Harbor East", timezone="America/New_York")
        )
        winter, summer = [
            await availability_service.create_slot(
                store,
                org.id,
                SlotCreateRequest(
                    site_id=eastern.id,
                    start_time="10:00",
                    end_time="11:00",
                    recurrence="once",
                    specific_date=day,
                    capacity=1,
                    duration_minutes=60,
                ),
            )
            for day in ("2030-01-07", "2030-07-08")
        ]
        booking = await book(store, winter)
        assert booking.start_time == "2030-01-07T15:00:00Z"
        assert booking.end_time == "2030-01-07T16:00:00Z"
        assert (await book(store, summer)).start_time == "2030-07-08T14:00:00Z"

    async def test_unknown_timezone(self, slot):
        with pytest.raises(ValidationError) as exc_info:
            booking_service.booking_window(slot, date(2030, 1, 7), "Mars/Olympus_Mons")
        assert exc_info.value.code == "INVALID_TIMEZONE"


# ---------------------------------------------------------------------------
# Service: create and capacity
# ---------------------------------------------------------------------------

class TestCreateBooking:
    async def test_pending_booking_takes_capacity(self, store, slot):
        booking = await book(store, slot)
        assert booking.status == BookingStatus.PENDING
        assert booking.client_email == "casey@example.org"
        assert (await store.get(slot.id))["currentBookings"] == 1
        assert (await store.get(booking.id))["slotId"] == slot.id

    async def test_full_slot_rejected(self, store, slot):
        await book(store, slot)
        fresh = await availability_service.get_slot_or_404(store, slot.id)
        with pytest.raises(SlotUnavailableError):
            await book(store, fresh)

    async def test_stale_slot_copy_still_rejected(self, store, slot):
        await book(store, slot)
        # ``slot`` still shows currentBookings == 0.
        with pytest.raises(SlotUnavailableError):
            await book(store, slot)
        assert (await store.get(slot.id))["currentBookings"] == 1

    async def test_concurrent_bookings_for_last_place(self, store, slot):
        results = await asyncio.gather(book(store, slot), book(store, slot), return_exceptions=True)
        created = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, Exception)]
        assert len(created) == 1
        assert len(failed) == 1 and isinstance(failed[0], SlotUnavailableError)
        assert (await store.get(slot.id))["currentBookings"] == 1

    async def test_site_mismatch(self, store, slot):
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.create_booking(
                store, slot.org_id, "site:other", slot.id, CLIENT, slot
            )
        assert exc_info.value.code == "SITE_MISMATCH"

    async def test_slot_of_other_org(self, store, slot):
        with pytest.raises(NotFoundError):
            await booking_service.create_booking(
                store, "org:other", slot.site_id, slot.id, CLIENT, slot
            )

    async def test_failed_booking_write_releases_capacity(self, store, slot, monkeypatch):
        real_insert = store.insert

        async def insert(doc):
            if doc.get("type") == "booking":
                raise RuntimeError("disk full")
            return await real_insert(doc)

        monkeypatch.setattr(store, "insert", insert)
        with pytest.raises(RuntimeError):
            await book(store, slot)
        assert (await store.get(slot.id))["currentBookings"] == 0


class TestUpcoming:
    async def test_window_and_status_filter(self, store, org, site, slot):
        kept = await book(store, slot)
        other_slot = await availability_service.create_slot(
            store,
            org.id,
            SlotCreateRequest(
                site_id=site.id,
                start_time="10:00",
                end_time="11:00",
                recurrence="once",
                specific_date="2030-01-08",
                capacity=2,
                duration_minutes=60,
            ),
        )
        cancelled = await book(store, other_slot)
        await booking_service.cancel_booking(store, cancelled)

        found = await booking_service.get_upcoming_bookings(
            store, "2030-01-07T00:00:00Z", "2030-01-09T00:00:00Z"
        )
        assert [b.id for b in found] == [kept.id]
        assert await booking_service.get_upcoming_bookings(
            store, "2030-01-07T00:00:00Z", "2030-01-09T00:00:00Z", org_id="org:other"
        ) == []


# ---------------------------------------------------------------------------
# Service: transitions
# ---------------------------------------------------------------------------

class TestTransitions:
    async def test_confirm_then_complete_keeps_capacity(self, store, slot):
        booking = await book(store, slot)
        booking = await booking_service.confirm_booking(store, booking)
        assert booking.confirmed_at is not None
        await booking_service.complete_booking(store, booking)
        assert (await store.get(slot.id))["currentBookings"] == 1

    async def test_cancel_releases_capacity(self, store, slot):
        booking = await book(store, slot)
        booking = await booking_service.cancel_booking(store, booking, "Sick")
        assert booking.status == BookingStatus.CANCELLED
        assert booking.cancel_reason == "Sick"
        assert (await store.get(slot.id))["currentBookings"] == 0

    async def test_double_cancel_is_rejected(self, store, slot):
        booking = await book(store, slot)
        await booking_service.cancel_booking(store, booking)
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.cancel_booking(store, booking)
        assert exc_info.value.code == "INVALID_STATE"
        assert (await store.get(slot.id))["currentBookings"] == 0

    async def test_failed_release_reverts_cancel(self, store, slot):
        booking = await book(store, slot)
        contention = AsyncMock(side_effect=ConflictError("Slot busy", code="SLOT_CONTENTION"))
        with patch("app.services.bookings.adjust_booking_count", new=contention):
            with pytest.raises(ConflictError):
                await booking_service.cancel_booking(store, booking, "Sick")

        stored = await store.get(booking.id)
        assert stored["status"] == "pending"
        assert "cancelledAt" not in stored
        assert (await store.get(slot.id))["currentBookings"] == 1

        # The cancel can be retried once the slot is writable again.
        fresh = await booking_service.get_booking(store, booking.id)
        await booking_service.cancel_booking(store, fresh)
        assert (await store.get(slot.id))["currentBookings"] == 0

    async def test_no_show_cannot_be_confirmed(self, store, slot):
        booking = await book(store, slot)
        await booking_service.mark_no_show(store, booking)
        with pytest.raises(ValidationError):
            await booking_service.confirm_booking(store, booking)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestBookingEndpoints:
    async def test_create_returns_201_and_audits(self, client, store, site, slot, client_headers):
        resp = await client.post(
            f"/api/v1/sites/{site.id}/bookings", json=booking_body(slot.id), headers=client_headers
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "pending"
        assert data["clientId"] == "user:client"

        from app.services.audit import get_resource_audit_trail

        trail = await get_resource_audit_trail(store, "booking", data["_id"])
        assert [entry.action for entry in trail] == ["booking.create"]

    async def test_concurrent_requests_for_last_place(self, client, site, slot, client_headers):
        url = f"/api/v1/sites/{site.id}/bookings"
        first, second = await asyncio.gather(
            client.post(url, json=booking_body(slot.id), headers=client_headers),
            client.post(url, json=booking_body(slot.id), headers=client_headers),
        )
        assert sorted([first.status_code, second.status_code]) == [201, 409]
        rejected = first if first.status_code == 409 else second
        assert rejected.json()["code"] == "SLOT_UNAVAILABLE"

    async def test_wrong_site_in_path(self, client, store, org, slot, client_headers):
        from app.services.organizations import create_site
        from scheduleright_shared.schemas.organizations import SiteCreateRequest

        second = await create_site(store, org.id, SiteCreateRequest(name="Second Site"))
        resp = await client.post(
            f"/api/v1/sites/{second.id}/bookings", json=booking_body(slot.id), headers=client_headers
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "SITE_MISMATCH"

    async def test_audit_failure_does_not_fail_booking(self, client, site, slot, client_headers):
        with patch(
            "app.services.audit.create_audit_log",
            new=AsyncMock(side_effect=RuntimeError("audit store down")),
        ):
            resp = await client.post(
                f"/api/v1/sites/{site.id}/bookings", json=booking_body(slot.id), headers=client_headers
            )
        assert resp.status_code == 201

    async def test_invalid_email_is_400(self, client, site, slot, client_headers):
        resp = await client.post(
            f"/api/v1/sites/{site.id}/bookings",
            json=booking_body(slot.id, clientEmail="nope"),
            headers=client_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"

    async def test_staff_lists_site_bookings(self, client, store, site, slot, staff_headers):
        await book(store, slot)
        resp = await client.get(f"/api/v1/sites/{site.id}/bookings", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json()["total"] == 1

        pending = await client.get(
            f"/api/v1/sites/{site.id}/bookings", params={"status": "confirmed"}, headers=staff_headers
        )
        assert pending.json()["total"] == 0

    async def test_client_cannot_list_site_bookings(self, client, site, client_headers):
        resp = await client.get(f"/api/v1/sites/{site.id}/bookings", headers=client_headers)
        assert resp.status_code == 403

    async def test_my_bookings(self, client, store, slot, org):
        await book(store, slot)
        headers = bearer("user:casey", org.id, [Role.CLIENT], "casey@example.org")
        resp = await client.get("/api/v1/bookings/me", headers=headers)
        assert resp.json()["total"] == 1


class TestBookingAccess:
    async def test_owner_by_email_can_read_and_cancel(self, client, store, slot, org):
        booking = await book(store, slot)
        owner = bearer("user:casey", org.id, [Role.CLIENT], "casey@example.org")

        assert (await client.get(f"/api/v1/bookings/{booking.id}", headers=owner)).status_code == 200
        resp = await client.put(
            f"/api/v1/bookings/{booking.id}/cancel", json={"reason": "Conflict"}, headers=owner
        )
        assert resp.status_code == 200
        assert resp.json()["cancelReason"] == "Conflict"
        assert (await store.get(slot.id))["currentBookings"] == 0

    async def test_other_client_is_forbidden(self, client, store, slot, client_headers):
        booking = await book(store, slot)
        resp = await client.get(f"/api/v1/bookings/{booking.id}", headers=client_headers)
        assert resp.status_code == 403

    async def test_other_org_staff_is_forbidden(self, client, store, slot, other_admin_headers):
        booking = await book(store, slot)
        resp = await client.get(f"/api/v1/bookings/{booking.id}", headers=other_admin_headers)
        assert resp.status_code == 403
        confirm = await client.put(
            f"/api/v1/bookings/{booking.id}/confirm", headers=other_admin_headers
        )
        assert confirm.status_code == 404

    async def test_client_cannot_confirm(self, client, store, slot, org):
        booking = await book(store, slot)
        owner = bearer("user:casey", org.id, [Role.CLIENT], "casey@example.org")
        resp = await client.put(f"/api/v1/bookings/{booking.id}/confirm", headers=owner)
        assert resp.status_code == 403

    async def test_staff_lifecycle(self, client, store, slot, staff_headers):
        booking = await book(store, slot)
        base = f"/api/v1/bookings/{booking.id}"

        confirmed = await client.put(f"{base}/confirm", headers=staff_headers)
        assert confirmed.json()["status"] == "confirmed"

        notes = await client.put(f"{base}/notes", json={"notes": "Needs ramp"}, headers=staff_headers)
        assert notes.json()["staffNotes"] == "Needs ramp"

        done = await client.put(f"{base}/complete", headers=staff_headers)
        assert done.json()["status"] == "completed"

        again = await client.put(f"{base}/cancel", headers=staff_headers)
        assert again.status_code == 400
        assert again.json()["code"] == "INVALID_STATE"

    async def test_no_show(self, client, store, slot, staff_headers):
        booking = await book(store, slot)
        resp = await client.put(f"/api/v1/bookings/{booking.id}/no-show", headers=staff_headers)
        assert resp.json()["status"] == "no-show"
        assert (await store.get(slot.id))["currentBookings"] == 1

    async def test_double_cancel_over_http(self, client, store, slot, staff_headers):
        booking = await book(store, slot)
        url = f"/api/v1/bookings/{booking.id}/cancel"
        assert (await client.put(url, headers=staff_headers)).status_code == 200
        second = await client.put(url, headers=staff_headers)
        assert second.status_code == 400
        assert second.json()["code"] == "INVALID_STATE"
        assert (await store.get(slot.id))["currentBookings"] == 0

    async def test_unknown_booking(self, client, staff_headers):
        resp = await client.get("/api/v1/bookings/booking:missing", headers=staff_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "BOOKING_NOT_FOUND"
