"""
PMS Sync Contracts
Canonical records, error taxonomy and the adapter interface every PMS vendor implements
"""

from typing import Protocol, Optional, List, Dict, Any, ClassVar, Mapping, Union
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from dataclasses import dataclass, field, fields, replace

from pms_sync.utils.logging import get_logger


# Canonical vocabularies
class BookingStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELED = "CANCELED"
    NO_SHOW = "NO_SHOW"


class RoomStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    DIRTY = "DIRTY"
    CLEANING = "CLEANING"
    INSPECTING = "INSPECTING"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_ORDER = "OUT_OF_ORDER"
    BLOCKED = "BLOCKED"


class EntityType(str, Enum):
    """Entity families a sync invocation can reconcile"""

    BOOKINGS = "bookings"
    ROOMS = "rooms"
    GUESTS = "guests"

    @property
    def singular(self) -> str:
        return self.value[:-1]


# Domain Models (vendor-agnostic)
@dataclass
class HotelScope:
    hotel_id: str
    external_hotel_id: Optional[str] = None


@dataclass
class SyncOptions:
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    limit: Optional[int] = None


@dataclass
class NormalizedBooking:
    external_id: str
    status: BookingStatus
    check_in_date: date
    check_out_date: date
    guest_id: Optional[str] = None
    guest_name: Optional[str] = None
    room_id: Optional[str] = None
    room_number: Optional[str] = None
    confirmation_number: Optional[str] = None
    number_of_guests: int = 1
    total_amount: Optional[Decimal] = None
    currency: Optional[str] = None
    special_requests: Optional[str] = None
    last_modified: Optional[datetime] = None


@dataclass
class NormalizedRoom:
    external_id: str
    room_number: str
    status: RoomStatus
    floor: Optional[int] = None
    room_type: Optional[str] = None
    max_occupancy: Optional[int] = None
    amenities: List[str] = field(default_factory=list)


@dataclass
class NormalizedGuest:
    external_id: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    loyalty_tier: Optional[str] = None
    total_stays: Optional[int] = None
    total_spent: Optional[Decimal] = None


@dataclass
class BookingDraft:
    check_in_date: date
    check_out_date: date
    first_name: str
    last_name: str
    guest_id: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    room_id: Optional[str] = None
    room_number: Optional[str] = None
    room_type: Optional[str] = None
    adults: int = 1
    children: int = 0
    special_requests: Optional[str] = None

    @property
    def number_of_guests(self) -> int:
        return self.adults + self.children


@dataclass
class BookingPatch:
    """Changes to an existing booking; ``None`` leaves a field untouched"""

    status: Optional[BookingStatus] = None
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    room_id: Optional[str] = None
    adults: Optional[int] = None
    children: Optional[int] = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


NormalizedRecord = Union[NormalizedBooking, NormalizedRoom, NormalizedGuest]


@dataclass
class ConnectionTestResult:
    success: bool
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


# Error taxonomy
class IntegrationError(Exception):
    """
    The only exception type that crosses component boundaries.

    ``code`` is a stable machine-readable identifier (``TIMEOUT``,
    ``HTTP_503``, ``SYNC_FAILED`` ...), ``status_code`` is HTTP-like.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "INTEGRATION_ERROR",
        cause: Optional[BaseException] = None,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.cause = cause
        self.retryable = retryable
        self.details = details or {}
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        return f"IntegrationError(code={self.code!r}, status_code={self.status_code}, message={self.message!r})"

    @property
    def is_not_supported(self) -> bool:
        return self.code.endswith("_NOT_SUPPORTED")

    def to_dict(self) -> Dict[str, Any]:
        """Serializable shape for API responses and event payloads"""
        payload = {
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
        }
        if self.details:
            payload["details"] = self.details
        if self.cause is not None:
            payload["cause"] = str(self.cause)
        return payload

    @classmethod
    def not_supported(cls, what: str) -> "IntegrationError":
        return cls(
            f"Provider does not support {what.lower()} sync",
            status_code=501,
            code=f"{what.upper()}_NOT_SUPPORTED",
        )

    @classmethod
    def operation_not_supported(cls, operation: str) -> "IntegrationError":
        return cls(
            f"Provider does not support {operation.lower().replace('_', ' ')}",
            status_code=501,
            code=f"{operation.upper()}_NOT_SUPPORTED",
        )

    @classmethod
    def invalid_payload(cls, message: str, **details) -> "IntegrationError":
        return cls(message, status_code=400, code="INVALID_PAYLOAD", details=details)


# Capability definitions
class Capabilities(Enum):
    """Standard capability flags"""

    BOOKINGS = "bookings"
    ROOMS = "rooms"
    GUESTS = "guests"
    CREATE_BOOKING = "create_booking"
    UPDATE_BOOKING = "update_booking"
    CANCEL_BOOKING = "cancel_booking"
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    UPDATE_ROOM_STATUS = "update_room_status"
    WEBHOOKS = "webhooks"
    REAL_TIME_SYNC = "real_time_sync"


@dataclass(frozen=True)
class RateLimit:
    requests_per_minute: int
    requests_per_hour: Optional[int] = None


@dataclass(frozen=True)
class AdapterMetadata:
    """Static description of a vendor adapter"""

    vendor: str
    display_name: str
    protocol: str  # rest, graphql, soap
    auth_type: str  # bearer, api_key, basic, none
    rate_limit: RateLimit
    supports_webhooks: bool = False
    supports_real_time_sync: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vendor": self.vendor,
            "display_name": self.display_name,
            "protocol": self.protocol,
            "auth_type": self.auth_type,
            "rate_limit": {
                "requests_per_minute": self.rate_limit.requests_per_minute,
                "requests_per_hour": self.rate_limit.requests_per_hour,
            },
            "supports_webhooks": self.supports_webhooks,
            "supports_real_time_sync": self.supports_real_time_sync,
        }


# Main Protocol
class PMSProviderAdapter(Protocol):
    """
    Universal PMS adapter interface.
    All remote operations are async; normalization is synchronous.

    ``fetch_payloads`` returns vendor records untouched so a caller can
    normalize them one at a time with ``normalize``; the ``fetch_*``
    methods do both in one step.
    """

    key: str
    metadata: AdapterMetadata
    capabilities: Dict[str, bool]

    async def fetch_payloads(
        self, entity_type: EntityType, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        ...

    def normalize(self, entity_type: EntityType, payload: Any) -> NormalizedRecord:
        ...

    def payload_id(self, entity_type: EntityType, payload: Any) -> Optional[str]:
        ...

    async def fetch_bookings(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[NormalizedBooking]:
        ...

    async def fetch_rooms(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[NormalizedRoom]:
        ...

    async def fetch_guests(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[NormalizedGuest]:
        ...

    async def create_booking(self, scope: HotelScope, draft: BookingDraft) -> str:
        ...

    async def update_booking(self, scope: HotelScope, external_id: str, patch: BookingPatch) -> None:
        ...

    async def cancel_booking(self, scope: HotelScope, external_id: str) -> None:
        ...

    async def check_in(self, scope: HotelScope, external_id: str, room_id: Optional[str] = None) -> None:
        ...

    async def check_out(self, scope: HotelScope, external_id: str) -> None:
        ...

    async def update_room_status(self, scope: HotelScope, room_id: str, status: RoomStatus) -> None:
        ...

    async def test_connection(self, scope: HotelScope) -> ConnectionTestResult:
        ...

    def normalize_booking(self, payload: Dict[str, Any]) -> NormalizedBooking:
        ...

    def normalize_room(self, payload: Dict[str, Any]) -> NormalizedRoom:
        ...

    def normalize_guest(self, payload: Dict[str, Any]) -> NormalizedGuest:
        ...

    def supports(self, entity_type: EntityType) -> bool:
        ...

    async def aclose(self) -> None:
        ...


# Base implementation with common functionality
class BaseAdapter:
    """
    Common plumbing for vendor adapters.

    Vendors implement ``fetch_*_payloads`` (one remote call returning raw
    records) and the matching ``normalize_*``. Anything a vendor leaves out
    fails fast with ``*_NOT_SUPPORTED`` so callers can tell "unsupported"
    apart from "no data".
    """

    metadata: ClassVar[AdapterMetadata]
    capabilities: ClassVar[Dict[str, bool]] = {}
    # Vendor key holding the record id in raw payloads, per entity type
    payload_id_fields: ClassVar[Dict[EntityType, str]] = {}

    def __init__(self, key: Optional[str] = None):
        self.key = key or self.metadata.vendor
        self.logger = get_logger(f"{self.__class__.__module__}.{self.__class__.__name__}").bind(
            vendor=self.metadata.vendor, provider=self.key
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        """Release pooled connections held by the adapter's transport"""
        transport = getattr(self, "transport", None)
        if transport is not None:
            await transport.aclose()

    def supports(self, entity_type: EntityType) -> bool:
        return self.capabilities.get(entity_type.value, False)

    # Raw fetches
    async def fetch_booking_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        raise IntegrationError.not_supported("bookings")

    async def fetch_room_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        raise IntegrationError.not_supported("rooms")

    async def fetch_guest_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        raise IntegrationError.not_supported("guests")

    async def fetch_payloads(
        self, entity_type: EntityType, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        if entity_type is EntityType.BOOKINGS:
            return await self.fetch_booking_payloads(scope, options)
        if entity_type is EntityType.ROOMS:
            return await self.fetch_room_payloads(scope, options)
        return await self.fetch_guest_payloads(scope, options)

    # Normalization
    def normalize_booking(self, payload: Dict[str, Any]) -> NormalizedBooking:
        raise IntegrationError.operation_not_supported("booking_webhook")

    def normalize_room(self, payload: Dict[str, Any]) -> NormalizedRoom:
        raise IntegrationError.not_supported("rooms")

    def normalize_guest(self, payload: Dict[str, Any]) -> NormalizedGuest:
        raise IntegrationError.not_supported("guests")

    def normalize(self, entity_type: EntityType, payload: Any) -> NormalizedRecord:
        if entity_type is EntityType.BOOKINGS:
            return self.normalize_booking(payload)
        if entity_type is EntityType.ROOMS:
            return self.normalize_room(payload)
        return self.normalize_guest(payload)

    def payload_id(self, entity_type: EntityType, payload: Any) -> Optional[str]:
        """Best-effort record id of a raw payload, for error reporting before normalization"""
        external_id = getattr(payload, "external_id", None)
        if external_id:
            return str(external_id)
        name = self.payload_id_fields.get(entity_type)
        if name and isinstance(payload, Mapping) and payload.get(name) not in (None, ""):
            return str(payload[name])
        return None

    # Fetch and normalize in one step
    async def fetch_bookings(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[NormalizedBooking]:
        return [self.normalize_booking(p) for p in await self.fetch_booking_payloads(scope, options)]

    async def fetch_rooms(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[NormalizedRoom]:
        return [self.normalize_room(p) for p in await self.fetch_room_payloads(scope, options)]

    async def fetch_guests(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[NormalizedGuest]:
        return [self.normalize_guest(p) for p in await self.fetch_guest_payloads(scope, options)]

    # Writes
    async def create_booking(self, scope: HotelScope, draft: BookingDraft) -> str:
        raise IntegrationError.operation_not_supported("create_booking")

    async def update_booking(self, scope: HotelScope, external_id: str, patch: BookingPatch) -> None:
        raise IntegrationError.operation_not_supported("update_booking")

    async def cancel_booking(self, scope: HotelScope, external_id: str) -> None:
        raise IntegrationError.operation_not_supported("cancel_booking")

    async def check_in(self, scope: HotelScope, external_id: str, room_id: Optional[str] = None) -> None:
        raise IntegrationError.operation_not_supported("check_in")

    async def check_out(self, scope: HotelScope, external_id: str) -> None:
        raise IntegrationError.operation_not_supported("check_out")

    async def update_room_status(self, scope: HotelScope, room_id: str, status: RoomStatus) -> None:
        raise IntegrationError.operation_not_supported("update_room_status")

    @staticmethod
    def _require_changes(patch: BookingPatch) -> None:
        if patch.is_empty():
            raise IntegrationError.invalid_payload("Booking update carries no changes")

    def property_id(self, scope: HotelScope) -> str:
        """Vendor-side property identifier for a scope"""
        return scope.external_hotel_id or scope.hotel_id

    def _connection_failed(self, error: Exception) -> ConnectionTestResult:
        self.logger.warning("connection_test_failed", error=str(error))
        details: Dict[str, Any] = {"vendor": self.metadata.vendor}
        if isinstance(error, IntegrationError):
            details["code"] = error.code
            details["status_code"] = error.status_code
        return ConnectionTestResult(
            success=False, message=f"Connection failed: {error}", details=details
        )


# Testing utilities
MOCK_STATUS_NAMES = {
    BookingStatus.CONFIRMED: "confirmed",
    BookingStatus.CHECKED_IN: "checked_in",
    BookingStatus.CHECKED_OUT: "checked_out",
    BookingStatus.CANCELED: "cancelled",
    BookingStatus.NO_SHOW: "no_show",
}


class MockAdapter(BaseAdapter):
    """In-memory adapter serving fixed sample data"""

    metadata = AdapterMetadata(
        vendor="mock",
        display_name="Mock PMS",
        protocol="rest",
        auth_type="none",
        rate_limit=RateLimit(requests_per_minute=1000),
        supports_webhooks=True,
        supports_real_time_sync=True,
    )
    capabilities = {cap.value: True for cap in Capabilities}

    payload_id_fields = {EntityType.BOOKINGS: "id"}

    STATUS_MAP = {
        "reserved": BookingStatus.CONFIRMED,
        "confirmed": BookingStatus.CONFIRMED,
        "checked_in": BookingStatus.CHECKED_IN,
        "checked_out": BookingStatus.CHECKED_OUT,
        "cancelled": BookingStatus.CANCELED,
        "canceled": BookingStatus.CANCELED,
        "no_show": BookingStatus.NO_SHOW,
    }

    def __init__(
        self,
        key: Optional[str] = None,
        bookings: Optional[List[Dict[str, Any]]] = None,
        rooms: Optional[List[NormalizedRoom]] = None,
        guests: Optional[List[NormalizedGuest]] = None,
    ):
        super().__init__(key)
        self._bookings = bookings if bookings is not None else self._sample_bookings()
        self._rooms = rooms if rooms is not None else self._sample_rooms()
        self._guests = guests if guests is not None else self._sample_guests()

    def normalize_booking(self, payload: Dict[str, Any]) -> NormalizedBooking:
        from pms_sync.normalization import (
            map_status,
            parse_date,
            parse_datetime,
            require_field,
            to_amount,
            to_int,
        )

        external_id = str(require_field(payload, "id", "Mock booking"))

        stay = payload.get("stay") or {}
        guest = payload.get("guest") or {}
        totals = payload.get("totals") or {}
        return NormalizedBooking(
            external_id=external_id,
            status=map_status(self.STATUS_MAP, str(payload.get("status", "")).lower(), "booking"),
            check_in_date=parse_date(stay.get("checkIn")),
            check_out_date=parse_date(stay.get("checkOut")),
            guest_name=guest.get("name"),
            room_number=stay.get("room"),
            confirmation_number=external_id,
            number_of_guests=to_int(payload.get("guests"), 1),
            total_amount=to_amount(totals.get("amount")),
            currency=totals.get("currency") or "USD",
            last_modified=parse_datetime(payload.get("updatedAt")),
        )

    def normalize_room(self, payload: Any) -> NormalizedRoom:
        # Sample rooms and guests are held already normalized
        if not isinstance(payload, NormalizedRoom):
            raise IntegrationError.invalid_payload("Mock room must be a NormalizedRoom")
        return payload

    def normalize_guest(self, payload: Any) -> NormalizedGuest:
        if not isinstance(payload, NormalizedGuest):
            raise IntegrationError.invalid_payload("Mock guest must be a NormalizedGuest")
        return payload

    async def fetch_booking_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        payloads = list(self._bookings)
        if options and options.since:
            payloads = [p for p in payloads if _modified_since(p, options.since)]
        return _limit(payloads, options)

    async def fetch_room_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        return _limit(list(self._rooms), options)

    async def fetch_guest_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        return _limit(list(self._guests), options)

    def _booking(self, external_id: str) -> Dict[str, Any]:
        for payload in self._bookings:
            if payload.get("id") == external_id:
                return payload
        raise IntegrationError(
            f"Booking {external_id} not found", status_code=404, code="HTTP_404"
        )

    async def update_booking(self, scope: HotelScope, external_id: str, patch: BookingPatch) -> None:
        self._require_changes(patch)
        payload = self._booking(external_id)
        stay = payload.setdefault("stay", {})
        if patch.status is not None:
            payload["status"] = MOCK_STATUS_NAMES[patch.status]
        if patch.check_in_date is not None:
            stay["checkIn"] = patch.check_in_date.isoformat()
        if patch.check_out_date is not None:
            stay["checkOut"] = patch.check_out_date.isoformat()
        if patch.room_id is not None:
            stay["room"] = patch.room_id
        if patch.adults is not None:
            payload["guests"] = patch.adults + (patch.children or 0)

    async def check_in(self, scope: HotelScope, external_id: str, room_id: Optional[str] = None) -> None:
        payload = self._booking(external_id)
        payload["status"] = "checked_in"
        if room_id is not None:
            payload.setdefault("stay", {})["room"] = room_id

    async def check_out(self, scope: HotelScope, external_id: str) -> None:
        self._booking(external_id)["status"] = "checked_out"

    async def update_room_status(self, scope: HotelScope, room_id: str, status: RoomStatus) -> None:
        for index, room in enumerate(self._rooms):
            if room.external_id == room_id:
                self._rooms[index] = replace(room, status=RoomStatus(status))
                return
        raise IntegrationError(f"Room {room_id} not found", status_code=404, code="HTTP_404")

    async def create_booking(self, scope: HotelScope, draft: BookingDraft) -> str:
        external_id = f"mock-{len(self._bookings) + 1}"
        self._bookings.append(
            {
                "id": external_id,
                "status": "confirmed",
                "guest": {"name": f"{draft.first_name} {draft.last_name}"},
                "stay": {
                    "checkIn": draft.check_in_date.isoformat(),
                    "checkOut": draft.check_out_date.isoformat(),
                    "room": draft.room_number,
                },
                "guests": draft.number_of_guests,
            }
        )
        return external_id

    async def cancel_booking(self, scope: HotelScope, external_id: str) -> None:
        self._booking(external_id)["status"] = "cancelled"

    async def test_connection(self, scope: HotelScope) -> ConnectionTestResult:
        return ConnectionTestResult(
            success=True, message="Connected to Mock PMS", details={"version": "mock-1.0"}
        )

    @staticmethod
    def _sample_bookings() -> List[Dict[str, Any]]:
        now = datetime.now(timezone.utc)
        return [
            {
                "id": "mock-1",
                "status": "confirmed",
                "guest": {"name": "Ava Rivera"},
                "stay": {"checkIn": "2025-03-01", "checkOut": "2025-03-03", "room": "1205"},
                "totals": {"amount": 250.35, "currency": "USD"},
                "guests": 2,
                "updatedAt": now.isoformat(),
            },
            {
                "id": "mock-2",
                "status": "checked_in",
                "guest": {"name": "Eugene Walters"},
                "stay": {"checkIn": "2025-03-01", "checkOut": "2025-03-02"},
                "totals": {"amount": 180, "currency": "USD"},
                "updatedAt": now.isoformat(),
            },
        ]

    @staticmethod
    def _sample_rooms() -> List[NormalizedRoom]:
        return [
            NormalizedRoom("room-101", "101", RoomStatus.AVAILABLE, floor=1, room_type="Single",
                           max_occupancy=1, amenities=["wifi", "tv"]),
            NormalizedRoom("room-205", "205", RoomStatus.OCCUPIED, floor=2, room_type="Double",
                           max_occupancy=2, amenities=["wifi", "tv", "minibar"]),
        ]

    @staticmethod
    def _sample_guests() -> List[NormalizedGuest]:
        return [
            NormalizedGuest("guest-1001", "Ava", "Rivera", email="ava@example.com",
                            phone="+1-555-1010", country="US", loyalty_tier="Gold",
                            total_stays=12, total_spent=Decimal("3500.00")),
            NormalizedGuest("guest-1002", "Eugene", "Walters", email="eugene@example.com",
                            country="US", loyalty_tier="Silver", total_stays=5,
                            total_spent=Decimal("1200.00")),
        ]


def _modified_since(payload: Any, since: datetime) -> bool:
    from pms_sync.normalization import parse_datetime

    if not isinstance(payload, Mapping):
        return True
    try:
        modified = parse_datetime(payload.get("updatedAt"))
    except IntegrationError:
        # Left in so normalization reports the bad timestamp against the record
        return True
    return modified is None or modified >= since


def _limit(items: list, options: Optional[SyncOptions]) -> list:
    if options and options.limit is not None:
        return items[: options.limit]
    return items
