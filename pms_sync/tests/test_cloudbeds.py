"""
Unit tests for the Cloudbeds adapter with HTTPX mocking
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from pytest_httpx import HTTPXMock

from pms_sync.adapters.cloudbeds import CloudbedsAdapter
from pms_sync.contracts import (
    BookingDraft,
    BookingPatch,
    BookingStatus,
    IntegrationError,
    RoomStatus,
    SyncOptions,
)

BASE = "https://pms.example.com/api"


@pytest.fixture
def cloudbeds(rest_client):
    return CloudbedsAdapter(transport=rest_client)


class TestCloudbedsNormalization:
    def test_normalize_booking(self, cloudbeds, cloudbeds_reservation):
        booking = cloudbeds.normalize_booking(cloudbeds_reservation)

        assert booking.external_id == "CB1001"
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.check_in_date == date(2025, 3, 1)
        assert booking.check_out_date == date(2025, 3, 4)
        assert booking.number_of_guests == 3
        assert booking.total_amount == Decimal("412.50")
        assert booking.room_number == "205"
        assert booking.last_modified == datetime(2025, 2, 20, 10, 15, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "status,expected",
        [
            ("confirmed", BookingStatus.CONFIRMED),
            ("not_confirmed", BookingStatus.CONFIRMED),
            ("checked_in", BookingStatus.CHECKED_IN),
            ("checked_out", BookingStatus.CHECKED_OUT),
            ("canceled", BookingStatus.CANCELED),
            ("no_show", BookingStatus.NO_SHOW),
        ],
    )
    def test_status_mapping(self, cloudbeds, cloudbeds_reservation, status, expected):
        cloudbeds_reservation["status"] = status

        assert cloudbeds.normalize_booking(cloudbeds_reservation).status == expected

    def test_unmapped_status(self, cloudbeds, cloudbeds_reservation):
        cloudbeds_reservation["status"] = "waitlist"

        with pytest.raises(IntegrationError) as exc_info:
            cloudbeds.normalize_booking(cloudbeds_reservation)

        assert exc_info.value.code == "UNMAPPED_STATUS"

    def test_missing_reservation_id(self, cloudbeds):
        with pytest.raises(IntegrationError) as exc_info:
            cloudbeds.normalize_booking({"status": "confirmed"})

        assert exc_info.value.code == "INVALID_PAYLOAD"

    def test_room_without_id_is_invalid(self, cloudbeds):
        with pytest.raises(IntegrationError) as exc_info:
            cloudbeds.normalize_room({"roomName": "101", "roomStatus": "clean"})

        assert exc_info.value.code == "INVALID_PAYLOAD"
        assert exc_info.value.details["field"] == "roomID"

    def test_guest_without_id_is_invalid(self, cloudbeds):
        with pytest.raises(IntegrationError) as exc_info:
            cloudbeds.normalize_guest({"guestFirstName": "Ava"})

        assert exc_info.value.code == "INVALID_PAYLOAD"
        assert exc_info.value.details["field"] == "guestID"


class TestCloudbedsAdapter:
    def test_requires_token(self):
        with pytest.raises(IntegrationError) as exc_info:
            CloudbedsAdapter()

        assert exc_info.value.code == "CONFIGURATION_ERROR"

    @pytest.mark.asyncio
    async def test_fetch_bookings(self, httpx_mock: HTTPXMock, cloudbeds, scope, cloudbeds_reservation):
        httpx_mock.add_response(
            url=f"{BASE}/reservations?propertyId=PROP1&modifiedSince=2025-02-01T00%3A00%3A00%2B00%3A00&pageSize=10",
            json={"success": True, "data": [cloudbeds_reservation]},
        )

        options = SyncOptions(since=datetime(2025, 2, 1, tzinfo=timezone.utc), limit=10)
        bookings = await cloudbeds.fetch_bookings(scope, options)

        assert [b.external_id for b in bookings] == ["CB1001"]

    @pytest.mark.asyncio
    async def test_fetch_rooms(self, httpx_mock: HTTPXMock, cloudbeds, scope):
        httpx_mock.add_response(
            url=f"{BASE}/properties/PROP1/rooms",
            json={
                "success": True,
                "data": [
                    {"roomID": "1", "roomName": "101", "roomStatus": "clean", "maxGuests": 2},
                    {"roomID": "2", "roomName": "102", "roomStatus": "dirty"},
                    {"roomID": "3", "roomName": "103", "roomStatus": "outoforder"},
                    {"roomID": "4", "roomName": "104", "roomStatus": "clean", "roomBlocked": True},
                ],
            },
        )

        rooms = await cloudbeds.fetch_rooms(scope)

        assert [r.status for r in rooms] == [
            RoomStatus.AVAILABLE,
            RoomStatus.DIRTY,
            RoomStatus.OUT_OF_ORDER,
            RoomStatus.BLOCKED,
        ]
        assert rooms[0].max_occupancy == 2

    @pytest.mark.asyncio
    async def test_fetch_guests(self, httpx_mock: HTTPXMock, cloudbeds, scope):
        httpx_mock.add_response(
            url=f"{BASE}/properties/PROP1/guests",
            json={"data": [{"guestID": "G-1", "guestFirstName": "Ava", "guestLastName": "Rivera", "guestEmail": ""}]},
        )

        guests = await cloudbeds.fetch_guests(scope)

        assert guests[0].external_id == "G-1"
        assert guests[0].email is None

    @pytest.mark.asyncio
    async def test_create_and_cancel(self, httpx_mock: HTTPXMock, cloudbeds, scope):
        httpx_mock.add_response(method="POST", url=f"{BASE}/postReservation", json={"success": True, "reservationID": "CB2002"})
        httpx_mock.add_response(method="PUT", url=f"{BASE}/putReservation", json={"success": True})

        draft = BookingDraft(
            check_in_date=date(2025, 9, 1),
            check_out_date=date(2025, 9, 4),
            first_name="Ava",
            last_name="Rivera",
            room_id="R-205",
            adults=2,
        )
        external_id = await cloudbeds.create_booking(scope, draft)
        await cloudbeds.cancel_booking(scope, external_id)

        create_body = json.loads(httpx_mock.get_requests()[0].read())
        cancel_body = json.loads(httpx_mock.get_requests()[1].read())
        assert external_id == "CB2002"
        assert create_body["propertyID"] == "PROP1"
        assert create_body["startDate"] == "2025-09-01"
        assert cancel_body == {"propertyID": "PROP1", "reservationID": "CB2002", "status": "canceled"}

    @pytest.mark.asyncio
    async def test_create_without_id_is_invalid(self, httpx_mock: HTTPXMock, cloudbeds, scope):
        httpx_mock.add_response(method="POST", json={"success": False})

        draft = BookingDraft(date(2025, 9, 1), date(2025, 9, 2), "Ava", "Rivera")
        with pytest.raises(IntegrationError) as exc_info:
            await cloudbeds.create_booking(scope, draft)

        assert exc_info.value.code == "INVALID_RESPONSE"

    @pytest.mark.asyncio
    async def test_connection_success(self, httpx_mock: HTTPXMock, cloudbeds, scope):
        httpx_mock.add_response(
            url=f"{BASE}/getHotel?propertyID=PROP1",
            json={"success": True, "data": {"propertyName": "Harbour View", "propertyCurrencyCode": "USD"}},
        )

        result = await cloudbeds.test_connection(scope)

        assert result.success is True
        assert result.details["property_name"] == "Harbour View"

    @pytest.mark.asyncio
    async def test_connection_empty_data(self, httpx_mock: HTTPXMock, cloudbeds, scope):
        httpx_mock.add_response(json={"success": True, "data": None})

        result = await cloudbeds.test_connection(scope)

        assert result.success is False

    @pytest.mark.asyncio
    async def test_connection_unauthorized(self, httpx_mock: HTTPXMock, cloudbeds, scope):
        httpx_mock.add_response(status_code=401, json={"message": "invalid token"})

        result = await cloudbeds.test_connection(scope)

        assert result.success is False
        assert result.details["code"] == "HTTP_401"

    @pytest.mark.asyncio
    async def test_room_payloads_are_returned_raw(self, httpx_mock: HTTPXMock, cloudbeds, scope):
        raw = [{"roomName": "101", "roomStatus": "clean"}]
        httpx_mock.add_response(url=f"{BASE}/properties/PROP1/rooms", json={"data": raw})

        assert await cloudbeds.fetch_room_payloads(scope) == raw


class TestCloudbedsWrites:
    @pytest.mark.asyncio
    async def test_update_booking(self, httpx_mock: HTTPXMock, cloudbeds, scope):
        httpx_mock.add_response(method="PUT", url=f"{BASE}/putReservation", json={"success": True})

        patch = BookingPatch(check_in_date=date(2025, 9, 2), status=BookingStatus.CONFIRMED)
        await cloudbeds.update_booking(scope, "CB1001", patch)

        body = json.loads(httpx_mock.get_requests()[0].read())
        assert body == {
            "propertyID": "PROP1",
            "reservationID": "CB1001",
            "startDate": "2025-09-02",
            "status": "confirmed",
        }

    @pytest.mark.asyncio
    async def test_empty_update_is_rejected(self, cloudbeds, scope):
        with pytest.raises(IntegrationError) as exc_info:
            await cloudbeds.update_booking(scope, "CB1001", BookingPatch())

        assert exc_info.value.code == "INVALID_PAYLOAD"

    @pytest.mark.asyncio
    async def test_check_in_and_out(self, httpx_mock: HTTPXMock, cloudbeds, scope):
        httpx_mock.add_response(method="POST", url=f"{BASE}/postCheckIn", json={"success": True})
        httpx_mock.add_response(method="POST", url=f"{BASE}/postCheckOut", json={"success": True})

        await cloudbeds.check_in(scope, "CB1001", room_id="R-205")
        await cloudbeds.check_out(scope, "CB1001")

        check_in_body = json.loads(httpx_mock.get_requests()[0].read())
        check_out_body = json.loads(httpx_mock.get_requests()[1].read())
        assert check_in_body == {"propertyID": "PROP1", "reservationID": "CB1001", "roomID": "R-205"}
        assert check_out_body == {"propertyID": "PROP1", "reservationID": "CB1001"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,expected",
        [
            (RoomStatus.AVAILABLE, "clean"),
            (RoomStatus.DIRTY, "dirty"),
            (RoomStatus.OUT_OF_ORDER, "outoforder"),
            (RoomStatus.MAINTENANCE, "outoforder"),
        ],
    )
    async def test_update_room_status(self, httpx_mock: HTTPXMock, cloudbeds, scope, status, expected):
        httpx_mock.add_response(method="PUT", url=f"{BASE}/putRoom", json={"success": True})

        await cloudbeds.update_room_status(scope, "R-205", status)

        body = json.loads(httpx_mock.get_requests()[0].read())
        assert body == {"propertyID": "PROP1", "roomID": "R-205", "roomStatus": expected}

    @pytest.mark.asyncio
    async def test_room_status_without_vendor_equivalent(self, cloudbeds, scope):
        with pytest.raises(IntegrationError) as exc_info:
            await cloudbeds.update_room_status(scope, "R-205", RoomStatus.INSPECTING)

        assert exc_info.value.code == "UNMAPPED_STATUS"
