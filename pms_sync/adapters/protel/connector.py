"""
Protel PMS Adapter
SOAP/XML web service with basic auth and strict status vocabularies
"""

from typing import Any, Dict, Iterable, List, Optional

from ...contracts import (
    AdapterMetadata,
    BaseAdapter,
    BookingDraft,
    BookingPatch,
    BookingStatus,
    Capabilities,
    ConnectionTestResult,
    EntityType,
    HotelScope,
    IntegrationError,
    NormalizedBooking,
    NormalizedGuest,
    NormalizedRoom,
    RateLimit,
    RoomStatus,
    SyncOptions,
)
from ...normalization import (
    map_status,
    parse_date,
    parse_datetime,
    require_field,
    to_amount,
    to_int,
    vendor_status,
)
from ...resilience import RetryOptions
from ...transports.soap import SOAPClient, as_list
from ...utils.logging import log_performance

PROTEL_NAMESPACE = "http://www.protel.net/webservice/"
DEFAULT_BASE_URL = "https://api.protel.net/pms"

ROOM_STATUS_MAP = {
    "Clean": RoomStatus.AVAILABLE,
    "Inspected": RoomStatus.AVAILABLE,
    "Dirty": RoomStatus.DIRTY,
    "OutOfOrder": RoomStatus.OUT_OF_ORDER,
    "OutOfService": RoomStatus.MAINTENANCE,
}

RESERVATION_STATUS_MAP = {
    "Confirmed": BookingStatus.CONFIRMED,
    "InHouse": BookingStatus.CHECKED_IN,
    "CheckedOut": BookingStatus.CHECKED_OUT,
    "Canceled": BookingStatus.CANCELED,
    "NoShow": BookingStatus.NO_SHOW,
}

RESERVATION_STATUS_OUT = {
    BookingStatus.CONFIRMED: "Confirmed",
    BookingStatus.CHECKED_IN: "InHouse",
    BookingStatus.CHECKED_OUT: "CheckedOut",
    BookingStatus.CANCELED: "Canceled",
    BookingStatus.NO_SHOW: "NoShow",
}

ROOM_STATUS_OUT = {
    RoomStatus.AVAILABLE: "Clean",
    RoomStatus.OCCUPIED: "Dirty",
    RoomStatus.DIRTY: "Dirty",
    RoomStatus.MAINTENANCE: "OutOfService",
    RoomStatus.OUT_OF_ORDER: "OutOfOrder",
}


def _is_false(value: Any) -> bool:
    return str(value).strip().lower() in ("false", "0")


class ProtelAdapter(BaseAdapter):
    """Protel SOAP adapter"""

    metadata = AdapterMetadata(
        vendor="protel",
        display_name="Protel",
        protocol="soap",
        auth_type="basic",
        rate_limit=RateLimit(requests_per_minute=60, requests_per_hour=3600),
        supports_webhooks=True,
        supports_real_time_sync=False,
    )

    capabilities = {
        Capabilities.BOOKINGS.value: True,
        Capabilities.ROOMS.value: True,
        Capabilities.GUESTS.value: True,
        Capabilities.CREATE_BOOKING.value: True,
        Capabilities.UPDATE_BOOKING.value: True,
        Capabilities.CANCEL_BOOKING.value: True,
        Capabilities.CHECK_IN.value: True,
        Capabilities.CHECK_OUT.value: True,
        Capabilities.UPDATE_ROOM_STATUS.value: True,
        Capabilities.WEBHOOKS.value: True,
        Capabilities.REAL_TIME_SYNC.value: False,
    }

    payload_id_fields = {
        EntityType.BOOKINGS: "ReservationNo",
        EntityType.ROOMS: "RoomNumber",
        EntityType.GUESTS: "GuestId",
    }

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        *,
        key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 45.0,
        retry_options: Optional[RetryOptions] = None,
        retryable_faults: Optional[Iterable[str]] = None,
        transport: Optional[SOAPClient] = None,
    ):
        super().__init__(key)
        if transport is None:
            if not username or not password:
                raise IntegrationError(
                    "Protel requires username and password for Basic Auth",
                    status_code=400,
                    code="CONFIGURATION_ERROR",
                )
            transport = SOAPClient(
                base_url,
                namespace=PROTEL_NAMESPACE,
                username=username,
                password=password,
                timeout=timeout,
                retry_options=retry_options,
                retryable_faults=retryable_faults,
                service_name="protel",
            )
        self.transport = transport

    @log_performance("fetch_bookings")
    async def fetch_booking_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        params: Dict[str, Any] = {"HotelId": self.property_id(scope)}
        if options and options.since:
            params["FromDate"] = options.since.date()
        if options and options.until:
            params["ToDate"] = options.until.date()

        result = await self.transport.call("GetReservations", params) or {}
        reservations = as_list(result.get("Reservation"))
        # GetReservations has no paging parameter
        if options and options.limit is not None:
            reservations = reservations[: options.limit]
        return reservations

    @log_performance("fetch_rooms")
    async def fetch_room_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        result = await self.transport.call("GetRooms", {"HotelId": self.property_id(scope)}) or {}
        return as_list(result.get("Room"))

    @log_performance("fetch_guests")
    async def fetch_guest_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        result = await self.transport.call("GetGuests", {"HotelId": self.property_id(scope)}) or {}
        return as_list(result.get("Guest"))

    async def create_booking(self, scope: HotelScope, draft: BookingDraft) -> str:
        result = await self.transport.call(
            "CreateReservation",
            {
                "HotelId": self.property_id(scope),
                "Reservation": {
                    "GuestId": draft.guest_id,
                    "RoomNumber": draft.room_number or draft.room_id,
                    "ArrivalDate": draft.check_in_date,
                    "DepartureDate": draft.check_out_date,
                    "Adults": draft.adults,
                    "Children": draft.children,
                    "Status": "Confirmed",
                },
            },
        )
        reservation_no = result.get("ReservationNo") if isinstance(result, dict) else result
        if not reservation_no:
            raise IntegrationError(
                "Protel did not return a reservation number",
                status_code=502,
                code="SOAP_ERROR",
            )
        return str(reservation_no)

    async def cancel_booking(self, scope: HotelScope, external_id: str) -> None:
        await self.transport.call(
            "CancelReservation",
            {"HotelId": self.property_id(scope), "ReservationNo": external_id},
        )

    async def update_booking(self, scope: HotelScope, external_id: str, patch: BookingPatch) -> None:
        self._require_changes(patch)
        status = None
        if patch.status is not None:
            status = vendor_status(RESERVATION_STATUS_OUT, patch.status, "booking")
        # Unset elements are left out of the envelope
        await self.transport.call(
            "UpdateReservation",
            {
                "HotelId": self.property_id(scope),
                "ReservationNo": external_id,
                "Reservation": {
                    "RoomNumber": patch.room_id,
                    "ArrivalDate": patch.check_in_date,
                    "DepartureDate": patch.check_out_date,
                    "Adults": patch.adults,
                    "Children": patch.children,
                    "Status": status,
                },
            },
        )
        self.logger.info("booking_updated", external_id=external_id)

    async def check_in(self, scope: HotelScope, external_id: str, room_id: Optional[str] = None) -> None:
        await self.transport.call(
            "CheckIn",
            {"HotelId": self.property_id(scope), "ReservationNo": external_id, "RoomNumber": room_id},
        )
        self.logger.info("booking_checked_in", external_id=external_id)

    async def check_out(self, scope: HotelScope, external_id: str) -> None:
        await self.transport.call(
            "CheckOut",
            {"HotelId": self.property_id(scope), "ReservationNo": external_id},
        )
        self.logger.info("booking_checked_out", external_id=external_id)

    async def update_room_status(self, scope: HotelScope, room_id: str, status: RoomStatus) -> None:
        await self.transport.call(
            "UpdateRoomStatus",
            {
                "HotelId": self.property_id(scope),
                "RoomNumber": room_id,
                "Status": vendor_status(ROOM_STATUS_OUT, status, "room"),
            },
        )
        self.logger.info("room_status_updated", room_id=room_id, status=getattr(status, "value", status))

    async def test_connection(self, scope: HotelScope) -> ConnectionTestResult:
        try:
            info = await self.transport.call("GetSystemInfo", {"HotelId": self.property_id(scope)})
        except IntegrationError as e:
            return self._connection_failed(e)

        info = info if isinstance(info, dict) else {}
        return ConnectionTestResult(
            success=True,
            message=f"Connected to Protel {info.get('Version')} - {info.get('HotelName')}",
            details={
                "vendor": self.metadata.vendor,
                "version": info.get("Version"),
                "hotel_name": info.get("HotelName"),
                "property_id": info.get("HotelId"),
            },
        )

    def normalize_booking(self, payload: Dict[str, Any]) -> NormalizedBooking:
        reservation_no = str(require_field(payload, "ReservationNo", "Protel reservation"))
        return NormalizedBooking(
            external_id=reservation_no,
            confirmation_number=reservation_no,
            status=map_status(RESERVATION_STATUS_MAP, payload.get("Status"), "booking"),
            check_in_date=parse_date(payload.get("ArrivalDate")),
            check_out_date=parse_date(payload.get("DepartureDate")),
            guest_id=payload.get("GuestId"),
            room_id=payload.get("RoomNumber"),
            room_number=payload.get("RoomNumber"),
            number_of_guests=to_int(payload.get("Adults"), 1) + to_int(payload.get("Children"), 0),
            total_amount=to_amount(payload.get("TotalAmount")),
            currency=payload.get("Currency"),
            last_modified=parse_datetime(payload.get("LastModified")),
        )

    def normalize_room(self, room: Dict[str, Any]) -> NormalizedRoom:
        room_number = str(require_field(room, "RoomNumber", "Protel room"))
        status = map_status(ROOM_STATUS_MAP, room.get("Status"), "room")
        if _is_false(room.get("IsActive", "true")):
            status = RoomStatus.BLOCKED
        return NormalizedRoom(
            external_id=room_number,
            room_number=room_number,
            status=status,
            floor=to_int(room.get("FloorNumber")),
            room_type=room.get("RoomTypeCode"),
            max_occupancy=to_int(room.get("MaxOccupancy")),
        )

    def normalize_guest(self, guest: Dict[str, Any]) -> NormalizedGuest:
        return NormalizedGuest(
            external_id=str(require_field(guest, "GuestId", "Protel guest")),
            first_name=guest.get("FirstName") or "",
            last_name=guest.get("LastName") or "",
            email=guest.get("Email"),
            phone=guest.get("Phone"),
            country=guest.get("Nationality"),
        )
