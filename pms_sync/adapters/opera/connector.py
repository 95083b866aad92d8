"""
Oracle OPERA Cloud PMS Adapter
REST API scoped per hotel code, API key auth and a gentler backoff schedule
"""

from datetime import datetime, timezone
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
    full_name,
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

DEFAULT_BASE_URL = "https://opera-pms.oracle.com/api/v1"

RESERVATION_STATUS_MAP = {
    "RESERVED": BookingStatus.CONFIRMED,
    "IN_HOUSE": BookingStatus.CHECKED_IN,
    "CHECKED_OUT": BookingStatus.CHECKED_OUT,
    "CANCELLED": BookingStatus.CANCELED,
    "NO_SHOW": BookingStatus.NO_SHOW,
}

HOUSEKEEPING_STATUS_MAP = {
    "CLEAN": RoomStatus.AVAILABLE,
    "INSPECTED": RoomStatus.AVAILABLE,
    "DIRTY": RoomStatus.DIRTY,
}

# Physical room state takes precedence over housekeeping
ROOM_CONDITION_MAP = {
    "OUT_OF_ORDER": RoomStatus.OUT_OF_ORDER,
    "OUT_OF_SERVICE": RoomStatus.MAINTENANCE,
}

RESERVATION_STATUS_OUT = {
    BookingStatus.CONFIRMED: "RESERVED",
    BookingStatus.CHECKED_IN: "IN_HOUSE",
    BookingStatus.CHECKED_OUT: "CHECKED_OUT",
    BookingStatus.CANCELED: "CANCELLED",
    BookingStatus.NO_SHOW: "NO_SHOW",
}

# An occupied room goes back to housekeeping as dirty
HOUSEKEEPING_STATUS_OUT = {
    RoomStatus.AVAILABLE: "CLEAN",
    RoomStatus.DIRTY: "DIRTY",
    RoomStatus.OCCUPIED: "DIRTY",
}

ROOM_CONDITION_OUT = {status.value: condition for condition, status in ROOM_CONDITION_MAP.items()}


def _collection(response: Any, key: str) -> List[Dict[str, Any]]:
    if not isinstance(response, dict):
        raise IntegrationError(
            f"Opera returned a non-JSON body for {key}",
            status_code=502,
            code="INVALID_RESPONSE",
        )
    return response.get(key) or []


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class OperaAdapter(BaseAdapter):
    """OPERA Cloud REST adapter"""

    metadata = AdapterMetadata(
        vendor="opera",
        display_name="Oracle OPERA Cloud",
        protocol="rest",
        auth_type="api_key",
        rate_limit=RateLimit(requests_per_minute=100, requests_per_hour=6000),
        supports_webhooks=True,
        supports_real_time_sync=True,
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
        Capabilities.REAL_TIME_SYNC.value: True,
    }

    payload_id_fields = {
        EntityType.BOOKINGS: "reservationId",
        EntityType.ROOMS: "roomId",
        EntityType.GUESTS: "profileId",
    }

    # Opera throttles aggressively; fewer, slower retries
    default_retry = RetryOptions(max_retries=2, initial_delay=2.0)

    def __init__(
        self,
        api_key: Optional[str] = None,
        hotel_code: Optional[str] = None,
        *,
        key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        retry_options: Optional[RetryOptions] = None,
        transport: Optional[RESTClient] = None,
    ):
        super().__init__(key)
        self.hotel_code = hotel_code
        if transport is None:
            if not api_key or not hotel_code:
                raise IntegrationError(
                    "Opera requires an API key and a hotel code",
                    status_code=400,
                    code="CONFIGURATION_ERROR",
                )
            transport = RESTClient(
                f"{base_url.rstrip('/')}/{hotel_code}",
                headers={"x-api-key": api_key},
                retry_options=retry_options or self.default_retry,
                timeout=timeout,
                service_name="opera",
            )
        self.transport = transport

    @log_performance("fetch_bookings")
    async def fetch_booking_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        params: Dict[str, Any] = {}
        if options and options.since:
            params["arrivalStart"] = options.since.date().isoformat()
        if options and options.until:
            params["arrivalEnd"] = options.until.date().isoformat()
        if options and options.limit:
            params["limit"] = options.limit

        response = await self.transport.get("/reservations", params=params or None)
        return _collection(response, "reservations")

    @log_performance("fetch_rooms")
    async def fetch_room_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        response = await self.transport.get("/rooms/inventory")
        return _collection(response, "rooms")

    @log_performance("fetch_guests")
    async def fetch_guest_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        response = await self.transport.get("/guests/profiles")
        # Company and travel agent profiles share the endpoint
        return [
            profile
            for profile in _collection(response, "profiles")
            if not isinstance(profile, dict) or profile.get("profileType", "GUEST") == "GUEST"
        ]

    async def create_booking(self, scope: HotelScope, draft: BookingDraft) -> str:
        response = await self.transport.post(
            "/reservations",
            json={
                "guestId": draft.guest_id,
                "guestName": {"firstName": draft.first_name, "lastName": draft.last_name},
                "roomType": draft.room_type,
                "roomId": draft.room_id,
                "arrivalDate": draft.check_in_date.isoformat(),
                "departureDate": draft.check_out_date.isoformat(),
                "adults": draft.adults,
                "children": draft.children,
                "comments": draft.special_requests,
            },
        )
        response = response if isinstance(response, dict) else {}
        external_id = response.get("reservationId") or response.get("confirmationNumber")
        if not external_id:
            raise IntegrationError(
                "Opera did not return a reservation ID",
                status_code=502,
                code="INVALID_RESPONSE",
            )
        return str(external_id)

    async def cancel_booking(self, scope: HotelScope, external_id: str) -> None:
        await self.transport.put(
            f"/reservations/{external_id}",
            json={"reservationStatus": "CANCELLED"},
        )

    async def update_booking(self, scope: HotelScope, external_id: str, patch: BookingPatch) -> None:
        self._require_changes(patch)
        body: Dict[str, Any] = {}
        if patch.check_in_date is not None:
            body["arrivalDate"] = patch.check_in_date.isoformat()
        if patch.check_out_date is not None:
            body["departureDate"] = patch.check_out_date.isoformat()
        if patch.room_id is not None:
            body["roomId"] = patch.room_id
        if patch.status is not None:
            body["reservationStatus"] = vendor_status(RESERVATION_STATUS_OUT, patch.status, "booking")
        if patch.adults is not None:
            body["adults"] = patch.adults
        if patch.children is not None:
            body["children"] = patch.children

        await self.transport.put(f"/reservations/{external_id}", json=body)
        self.logger.info("booking_updated", external_id=external_id)

    async def check_in(self, scope: HotelScope, external_id: str, room_id: Optional[str] = None) -> None:
        body: Dict[str, Any] = {"checkInDate": _now_iso()}
        if room_id:
            body["roomId"] = room_id
        await self.transport.post(f"/reservations/{external_id}/checkIn", json=body)
        self.logger.info("booking_checked_in", external_id=external_id)

    async def check_out(self, scope: HotelScope, external_id: str) -> None:
        await self.transport.post(
            f"/reservations/{external_id}/checkOut",
            json={"checkOutDate": _now_iso()},
        )
        self.logger.info("booking_checked_out", external_id=external_id)

    async def update_room_status(self, scope: HotelScope, room_id: str, status: RoomStatus) -> None:
        value = getattr(status, "value", status)
        condition = ROOM_CONDITION_OUT.get(value)
        if condition is not None:
            body = {"roomStatus": condition}
        else:
            body = {"housekeepingStatus": vendor_status(HOUSEKEEPING_STATUS_OUT, status, "room")}
        await self.transport.put(f"/rooms/{room_id}", json=body)
        self.logger.info("room_status_updated", room_id=room_id, status=value)

    async def test_connection(self, scope: HotelScope) -> ConnectionTestResult:
        try:
            hotel = await self.transport.get("/hotel")
        except IntegrationError as e:
            return self._connection_failed(e)

        hotel = hotel if isinstance(hotel, dict) else {}
        return ConnectionTestResult(
            success=True,
            message=f"Connected to Opera Cloud - {hotel.get('hotelName', self.hotel_code)}",
            details={
                "vendor": self.metadata.vendor,
                "hotel_code": hotel.get("hotelCode", self.hotel_code),
                "chain_code": hotel.get("chainCode"),
            },
        )

    def normalize_booking(self, payload: Dict[str, Any]) -> NormalizedBooking:
        reservation_id = str(require_field(payload, "reservationId", "Opera reservation"))
        guest_name = payload.get("guestName") or {}
        balance = payload.get("balance") or {}
        amount = to_amount(balance.get("amount"))
        return NormalizedBooking(
            external_id=reservation_id,
            confirmation_number=payload.get("confirmationNumber"),
            status=map_status(RESERVATION_STATUS_MAP, payload.get("reservationStatus"), "booking"),
            check_in_date=parse_date(payload.get("arrivalDate")),
            check_out_date=parse_date(payload.get("departureDate")),
            guest_id=payload.get("guestId"),
            guest_name=full_name(guest_name.get("firstName"), guest_name.get("lastName")),
            room_id=payload.get("roomId"),
            room_number=payload.get("roomNumber"),
            number_of_guests=to_int(payload.get("adults"), 1) + to_int(payload.get("children"), 0),
            total_amount=abs(amount) if amount is not None else None,
            currency=balance.get("currency"),
            special_requests=payload.get("comments"),
            last_modified=parse_datetime(payload.get("lastModified")),
        )

    def normalize_room(self, room: Dict[str, Any]) -> NormalizedRoom:
        room_id = str(require_field(room, "roomId", "Opera room"))
        return NormalizedRoom(
            external_id=room_id,
            room_number=str(room.get("roomNumber") or room_id),
            status=self._room_status(room),
            floor=to_int(room.get("floor")),
            room_type=room.get("roomType"),
            max_occupancy=to_int(room.get("maxOccupancy")),
            amenities=list(room.get("features") or []),
        )

    @staticmethod
    def _room_status(room: Dict[str, Any]) -> RoomStatus:
        condition = room.get("roomStatus")
        if condition in ROOM_CONDITION_MAP:
            return ROOM_CONDITION_MAP[condition]
        if room.get("frontOfficeStatus") == "OCCUPIED":
            return RoomStatus.OCCUPIED
        return map_status(
            HOUSEKEEPING_STATUS_MAP,
            room.get("housekeepingStatus") or condition,
            "room",
        )

    def normalize_guest(self, profile: Dict[str, Any]) -> NormalizedGuest:
        profile_id = str(require_field(profile, "profileId", "Opera profile"))
        addresses = profile.get("addresses") or [{}]
        return NormalizedGuest(
            external_id=profile_id,
            first_name=profile.get("firstName") or "",
            last_name=profile.get("lastName") or "",
            email=profile.get("email"),
            phone=profile.get("phone"),
            country=profile.get("nationality") or addresses[0].get("country"),
            loyalty_tier=profile.get("membershipLevel"),
            total_stays=to_int(profile.get("stayCount")),
            total_spent=to_amount(profile.get("totalRevenue")),
        )
