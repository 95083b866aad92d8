"""
Cloudbeds PMS Adapter
REST API with bearer token auth, wrapped in a {"success", "data"} envelope
"""

from typing import Any, Dict, List, Optional

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
from ...transports.rest import RESTClient
from ...utils.logging import log_performance

DEFAULT_BASE_URL = "https://api.cloudbeds.com/v1"

ROOM_STATUS_MAP = {
    "clean": RoomStatus.AVAILABLE,
    "inspected": RoomStatus.AVAILABLE,
    "dirty": RoomStatus.DIRTY,
    "outoforder": RoomStatus.OUT_OF_ORDER,
}

RESERVATION_STATUS_MAP = {
    "confirmed": BookingStatus.CONFIRMED,
    "not_confirmed": BookingStatus.CONFIRMED,
    "checked_in": BookingStatus.CHECKED_IN,
    "checked_out": BookingStatus.CHECKED_OUT,
    "canceled": BookingStatus.CANCELED,
    "no_show": BookingStatus.NO_SHOW,
}

# Outbound: canonical status to what putReservation / putRoom accept
RESERVATION_STATUS_OUT = {
    BookingStatus.CONFIRMED: "confirmed",
    BookingStatus.CHECKED_IN: "checked_in",
    BookingStatus.CHECKED_OUT: "checked_out",
    BookingStatus.CANCELED: "canceled",
    BookingStatus.NO_SHOW: "no_show",
}

ROOM_STATUS_OUT = {
    RoomStatus.AVAILABLE: "clean",
    RoomStatus.DIRTY: "dirty",
    RoomStatus.OUT_OF_ORDER: "outoforder",
    RoomStatus.MAINTENANCE: "outoforder",
}


def _unwrap(response: Any) -> Any:
    if isinstance(response, dict) and "data" in response:
        return response["data"]
    return response


class CloudbedsAdapter(BaseAdapter):
    """Cloudbeds REST adapter"""

    metadata = AdapterMetadata(
        vendor="cloudbeds",
        display_name="Cloudbeds",
        protocol="rest",
        auth_type="bearer",
        rate_limit=RateLimit(requests_per_minute=60, requests_per_hour=3000),
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
        EntityType.BOOKINGS: "reservationID",
        EntityType.ROOMS: "roomID",
        EntityType.GUESTS: "guestID",
    }

    default_retry = RetryOptions(max_retries=3)

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        retry_options: Optional[RetryOptions] = None,
        transport: Optional[RESTClient] = None,
    ):
        super().__init__(key)
        if transport is None:
            if not api_key:
                raise IntegrationError(
                    "Cloudbeds requires an API access token",
                    status_code=400,
                    code="CONFIGURATION_ERROR",
                )
            transport = RESTClient(
                base_url,
                headers={"Authorization": f"Bearer {api_key}"},
                retry_options=retry_options or self.default_retry,
                timeout=timeout,
                service_name="cloudbeds",
            )
        self.transport = transport

    @log_performance("fetch_bookings")
    async def fetch_booking_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        params: Dict[str, Any] = {"propertyId": self.property_id(scope)}
        if options and options.since:
            params["modifiedSince"] = options.since.isoformat()
        if options and options.limit:
            params["pageSize"] = options.limit

        return _unwrap(await self.transport.get("/reservations", params=params)) or []

    @log_performance("fetch_rooms")
    async def fetch_room_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        return _unwrap(await self.transport.get(f"/properties/{self.property_id(scope)}/rooms")) or []

    @log_performance("fetch_guests")
    async def fetch_guest_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        return _unwrap(await self.transport.get(f"/properties/{self.property_id(scope)}/guests")) or []

    async def create_booking(self, scope: HotelScope, draft: BookingDraft) -> str:
        response = await self.transport.post(
            "/postReservation",
            json={
                "propertyID": self.property_id(scope),
                "startDate": draft.check_in_date.isoformat(),
                "endDate": draft.check_out_date.isoformat(),
                "guestFirstName": draft.first_name,
                "guestLastName": draft.last_name,
                "guestEmail": draft.email or "",
                "guestPhone": draft.phone or "",
                "roomID": draft.room_id,
                "adults": draft.adults,
                "children": draft.children,
            },
        )
        reservation_id = response.get("reservationID") if isinstance(response, dict) else None
        if not reservation_id:
            raise IntegrationError(
                "Cloudbeds did not return a reservation ID",
                status_code=502,
                code="INVALID_RESPONSE",
            )
        self.logger.info("booking_created", external_id=reservation_id)
        return str(reservation_id)

    async def cancel_booking(self, scope: HotelScope, external_id: str) -> None:
        await self.transport.put(
            "/putReservation",
            json={
                "propertyID": self.property_id(scope),
                "reservationID": external_id,
                "status": "canceled",
            },
        )
        self.logger.info("booking_canceled", external_id=external_id)

    async def update_booking(self, scope: HotelScope, external_id: str, patch: BookingPatch) -> None:
        self._require_changes(patch)
        body: Dict[str, Any] = {
            "propertyID": self.property_id(scope),
            "reservationID": external_id,
        }
        if patch.check_in_date is not None:
            body["startDate"] = patch.check_in_date.isoformat()
        if patch.check_out_date is not None:
            body["endDate"] = patch.check_out_date.isoformat()
        if patch.status is not None:
            body["status"] = vendor_status(RESERVATION_STATUS_OUT, patch.status, "booking")
        if patch.room_id is not None:
            body["roomID"] = patch.room_id
        if patch.adults is not None:
            body["adults"] = patch.adults
        if patch.children is not None:
            body["children"] = patch.children

        await self.transport.put("/putReservation", json=body)
        self.logger.info("booking_updated", external_id=external_id)

    async def check_in(self, scope: HotelScope, external_id: str, room_id: Optional[str] = None) -> None:
        body: Dict[str, Any] = {"propertyID": self.property_id(scope), "reservationID": external_id}
        if room_id:
            body["roomID"] = room_id
        await self.transport.post("/postCheckIn", json=body)
        self.logger.info("booking_checked_in", external_id=external_id)

    async def check_out(self, scope: HotelScope, external_id: str) -> None:
        await self.transport.post(
            "/postCheckOut",
            json={"propertyID": self.property_id(scope), "reservationID": external_id},
        )
        self.logger.info("booking_checked_out", external_id=external_id)

    async def update_room_status(self, scope: HotelScope, room_id: str, status: RoomStatus) -> None:
        await self.transport.put(
            "/putRoom",
            json={
                "propertyID": self.property_id(scope),
                "roomID": room_id,
                "roomStatus": vendor_status(ROOM_STATUS_OUT, status, "room"),
            },
        )
        self.logger.info("room_status_updated", room_id=room_id, status=getattr(status, "value", status))

    async def test_connection(self, scope: HotelScope) -> ConnectionTestResult:
        try:
            response = await self.transport.get("/getHotel", params={"propertyID": self.property_id(scope)})
        except IntegrationError as e:
            return self._connection_failed(e)

        hotel = _unwrap(response)
        if not hotel:
            return ConnectionTestResult(
                success=False,
                message="No property data returned",
                details={"vendor": self.metadata.vendor},
            )
        return ConnectionTestResult(
            success=True,
            message="Successfully connected to Cloudbeds PMS",
            details={
                "vendor": self.metadata.vendor,
                "property_name": hotel.get("propertyName"),
                "currency": hotel.get("propertyCurrencyCode"),
            },
        )

    def normalize_booking(self, payload: Dict[str, Any]) -> NormalizedBooking:
        reservation_id = str(require_field(payload, "reservationID", "Cloudbeds reservation"))

        adults = to_int(payload.get("adults"), 1)
        children = to_int(payload.get("children"), 0)
        balance = to_amount(payload.get("balance"))
        return NormalizedBooking(
            external_id=reservation_id,
            confirmation_number=reservation_id,
            status=map_status(RESERVATION_STATUS_MAP, payload.get("status"), "booking"),
            check_in_date=parse_date(payload.get("startDate")),
            check_out_date=parse_date(payload.get("endDate")),
            guest_id=payload.get("guestID"),
            guest_name=payload.get("guestName"),
            room_id=payload.get("roomID"),
            room_number=payload.get("roomName"),
            number_of_guests=adults + children,
            total_amount=abs(balance) if balance is not None else None,
            currency=payload.get("currency"),
            last_modified=parse_datetime(payload.get("dateModified")),
        )

    def normalize_room(self, room: Dict[str, Any]) -> NormalizedRoom:
        room_id = str(require_field(room, "roomID", "Cloudbeds room"))
        if room.get("roomBlocked"):
            status = RoomStatus.BLOCKED
        else:
            status = map_status(ROOM_STATUS_MAP, room.get("roomStatus"), "room")
        return NormalizedRoom(
            external_id=room_id,
            room_number=str(room.get("roomName") or room_id),
            status=status,
            room_type=room.get("roomTypeName"),
            max_occupancy=to_int(room.get("maxGuests")),
        )

    def normalize_guest(self, guest: Dict[str, Any]) -> NormalizedGuest:
        return NormalizedGuest(
            external_id=str(require_field(guest, "guestID", "Cloudbeds guest")),
            first_name=guest.get("guestFirstName") or "",
            last_name=guest.get("guestLastName") or "",
            email=guest.get("guestEmail") or None,
            phone=guest.get("guestPhone") or None,
            country=guest.get("guestCountry") or None,
        )
