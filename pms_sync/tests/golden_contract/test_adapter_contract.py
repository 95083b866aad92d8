"""
Golden Contract Test Suite
Ensures all PMS adapters behave identically from the orchestrator's perspective
"""

from datetime import date
from typing import Any, Callable, Dict, Optional

import pytest

from pms_sync.adapters import CloudbedsAdapter, MewsAdapter, OperaAdapter, ProtelAdapter
from pms_sync.config import VENDOR_AUTH_TYPES
from pms_sync.contracts import (
    BaseAdapter,
    BookingDraft,
    BookingPatch,
    BookingStatus,
    Capabilities,
    EntityType,
    HotelScope,
    IntegrationError,
    MockAdapter,
    NormalizedBooking,
    RoomStatus,
)
from pms_sync.registry import ADAPTER_CLASSES

pytestmark = pytest.mark.golden

WRITE_OPERATIONS = [
    Capabilities.CREATE_BOOKING.value,
    Capabilities.UPDATE_BOOKING.value,
    Capabilities.CANCEL_BOOKING.value,
    Capabilities.CHECK_IN.value,
    Capabilities.CHECK_OUT.value,
    Capabilities.UPDATE_ROOM_STATUS.value,
]


class GoldenContractTestBase:
    """
    Base class for golden contract tests
    Subclass this for each adapter and set adapter_factory and sample_booking
    """

    adapter_factory: Optional[Callable[[], BaseAdapter]] = None
    sample_booking: Optional[Dict[str, Any]] = None

    @pytest.fixture
    def adapter(self):
        if self.adapter_factory is None:
            pytest.skip("No adapter factory defined")
        return type(self).adapter_factory()

    def test_metadata(self, adapter):
        metadata = adapter.metadata

        assert ADAPTER_CLASSES[metadata.vendor] is type(adapter)
        assert metadata.protocol in ("rest", "graphql", "soap")
        assert metadata.auth_type == VENDOR_AUTH_TYPES[metadata.vendor]
        assert metadata.rate_limit.requests_per_minute > 0
        assert adapter.key == metadata.vendor

    def test_capabilities_are_complete(self, adapter):
        for capability in Capabilities:
            assert isinstance(adapter.capabilities.get(capability.value), bool)
        for entity_type in EntityType:
            assert adapter.supports(entity_type) == adapter.capabilities[entity_type.value]

    def test_normalize_booking(self, adapter):
        booking = adapter.normalize_booking(dict(self.sample_booking))

        assert isinstance(booking, NormalizedBooking)
        assert isinstance(booking.status, BookingStatus)
        assert booking.external_id
        assert booking.check_out_date >= booking.check_in_date
        assert booking.number_of_guests >= 1

    def test_normalize_rejects_empty_payload(self, adapter):
        with pytest.raises(IntegrationError) as exc_info:
            adapter.normalize_booking({})

        assert exc_info.value.code == "INVALID_PAYLOAD"

    @pytest.mark.parametrize("entity_type", [EntityType.ROOMS, EntityType.GUESTS])
    def test_normalize_rejects_record_without_id(self, adapter, entity_type):
        with pytest.raises(IntegrationError) as exc_info:
            adapter.normalize(entity_type, {})

        assert exc_info.value.code == "INVALID_PAYLOAD"

    def test_payload_id_matches_normalized_id(self, adapter):
        booking = adapter.normalize_booking(dict(self.sample_booking))

        assert adapter.payload_id(EntityType.BOOKINGS, self.sample_booking) == booking.external_id
        assert adapter.payload_id(EntityType.BOOKINGS, "garbage") is None

    @pytest.mark.parametrize("operation", WRITE_OPERATIONS)
    def test_write_capabilities_are_implemented(self, adapter, operation):
        overridden = getattr(type(adapter), operation) is not getattr(BaseAdapter, operation)

        assert adapter.capabilities[operation] == overridden

    @pytest.mark.asyncio
    async def test_async_context_manager(self, adapter):
        async with adapter as entered:
            assert entered is adapter


class TestCloudbedsGoldenContract(GoldenContractTestBase):
    adapter_factory = staticmethod(lambda: CloudbedsAdapter("token"))
    sample_booking = {
        "reservationID": "CB1",
        "status": "checked_out",
        "startDate": "2025-01-01",
        "endDate": "2025-01-03",
        "adults": 1,
    }


class TestOperaGoldenContract(GoldenContractTestBase):
    adapter_factory = staticmethod(lambda: OperaAdapter("key", "HOTEL1"))
    sample_booking = {
        "reservationId": "OP1",
        "reservationStatus": "RESERVED",
        "arrivalDate": "2025-01-01",
        "departureDate": "2025-01-02",
    }


class TestMewsGoldenContract(GoldenContractTestBase):
    adapter_factory = staticmethod(lambda: MewsAdapter("token"))
    sample_booking = {
        "id": "M1",
        "state": "Confirmed",
        "startUtc": "2025-01-01T14:00:00Z",
        "endUtc": "2025-01-02T10:00:00Z",
    }


class TestProtelGoldenContract(GoldenContractTestBase):
    adapter_factory = staticmethod(lambda: ProtelAdapter("user", "pass"))
    sample_booking = {
        "ReservationNo": "P1",
        "Status": "NoShow",
        "ArrivalDate": "2025-01-01",
        "DepartureDate": "2025-01-02",
    }


class TestMockGoldenContract(GoldenContractTestBase):
    adapter_factory = staticmethod(lambda: MockAdapter())
    sample_booking = {
        "id": "mock-9",
        "status": "reserved",
        "stay": {"checkIn": "2025-01-01", "checkOut": "2025-01-02"},
    }


class TestMockAdapterLifecycle:
    """End-to-end behaviour of the in-memory adapter"""

    @pytest.mark.asyncio
    async def test_create_fetch_cancel(self, scope):
        adapter = MockAdapter(bookings=[])
        draft = BookingDraft(date(2025, 2, 1), date(2025, 2, 3), "Ava", "Rivera", room_number="101", adults=2)

        external_id = await adapter.create_booking(scope, draft)
        await adapter.cancel_booking(scope, external_id)
        bookings = await adapter.fetch_bookings(scope)

        assert external_id == "mock-1"
        assert bookings[0].status == BookingStatus.CANCELED
        assert bookings[0].number_of_guests == 2

    @pytest.mark.asyncio
    async def test_cancel_unknown_booking(self, scope):
        with pytest.raises(IntegrationError) as exc_info:
            await MockAdapter().cancel_booking(scope, "missing")

        assert exc_info.value.code == "HTTP_404"

    @pytest.mark.asyncio
    async def test_update_check_in_check_out(self, scope):
        adapter = MockAdapter()

        await adapter.update_booking(scope, "mock-1", BookingPatch(check_out_date=date(2025, 3, 4), adults=3))
        await adapter.check_in(scope, "mock-1", room_id="1206")
        checked_in = (await adapter.fetch_bookings(scope))[0]
        await adapter.check_out(scope, "mock-1")
        checked_out = (await adapter.fetch_bookings(scope))[0]

        assert checked_in.status == BookingStatus.CHECKED_IN
        assert checked_in.check_out_date == date(2025, 3, 4)
        assert checked_in.room_number == "1206"
        assert checked_in.number_of_guests == 3
        assert checked_out.status == BookingStatus.CHECKED_OUT

    @pytest.mark.asyncio
    async def test_update_booking_status(self, scope):
        adapter = MockAdapter()

        await adapter.update_booking(scope, "mock-2", BookingPatch(status=BookingStatus.NO_SHOW))

        assert (await adapter.fetch_bookings(scope))[1].status == BookingStatus.NO_SHOW

    @pytest.mark.asyncio
    async def test_empty_update_is_rejected(self, scope):
        with pytest.raises(IntegrationError) as exc_info:
            await MockAdapter().update_booking(scope, "mock-1", BookingPatch())

        assert exc_info.value.code == "INVALID_PAYLOAD"

    @pytest.mark.asyncio
    async def test_update_room_status(self, scope):
        adapter = MockAdapter()

        await adapter.update_room_status(scope, "room-205", RoomStatus.DIRTY)
        rooms = await adapter.fetch_rooms(scope)

        assert [r.status for r in rooms] == [RoomStatus.AVAILABLE, RoomStatus.DIRTY]

    @pytest.mark.asyncio
    async def test_update_unknown_room(self, scope):
        with pytest.raises(IntegrationError) as exc_info:
            await MockAdapter().update_room_status(scope, "room-999", RoomStatus.DIRTY)

        assert exc_info.value.code == "HTTP_404"

    @pytest.mark.asyncio
    async def test_connection(self, scope):
        result = await MockAdapter().test_connection(scope)

        assert result.success is True


class TestBaseAdapterDefaults:
    """Operations an adapter does not override fail fast as not supported"""

    class BareAdapter(BaseAdapter):
        metadata = MockAdapter.metadata

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,code",
        [
            ("fetch_bookings", "BOOKINGS_NOT_SUPPORTED"),
            ("fetch_rooms", "ROOMS_NOT_SUPPORTED"),
            ("fetch_guests", "GUESTS_NOT_SUPPORTED"),
        ],
    )
    async def test_fetch_defaults(self, method, code):
        adapter = self.BareAdapter()

        with pytest.raises(IntegrationError) as exc_info:
            await getattr(adapter, method)(HotelScope("hotel-1"))

        assert exc_info.value.code == code
        assert exc_info.value.status_code == 501
        assert exc_info.value.is_not_supported

    def test_supports_nothing_by_default(self):
        adapter = self.BareAdapter()

        assert not any(adapter.supports(entity_type) for entity_type in EntityType)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,args,code",
        [
            ("create_booking", (BookingDraft(date(2025, 1, 1), date(2025, 1, 2), "A", "B"),), "CREATE_BOOKING_NOT_SUPPORTED"),
            ("update_booking", ("b1", BookingPatch(adults=2)), "UPDATE_BOOKING_NOT_SUPPORTED"),
            ("cancel_booking", ("b1",), "CANCEL_BOOKING_NOT_SUPPORTED"),
            ("check_in", ("b1",), "CHECK_IN_NOT_SUPPORTED"),
            ("check_out", ("b1",), "CHECK_OUT_NOT_SUPPORTED"),
            ("update_room_status", ("r1", RoomStatus.DIRTY), "UPDATE_ROOM_STATUS_NOT_SUPPORTED"),
        ],
    )
    async def test_write_defaults(self, method, args, code):
        adapter = self.BareAdapter()

        with pytest.raises(IntegrationError) as exc_info:
            await getattr(adapter, method)(HotelScope("hotel-1"), *args)

        assert exc_info.value.code == code
        assert exc_info.value.status_code == 501

    def test_payload_id_without_id_fields(self):
        assert self.BareAdapter().payload_id(EntityType.BOOKINGS, {"id": "x"}) is None
