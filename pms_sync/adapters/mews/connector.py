"""
Mews PMS Adapter
GraphQL API, enterprise-scoped queries with bearer token auth
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
    full_name,
    map_status,
    parse_date,
    parse_datetime,
    require_field,
    to_amount,
    to_int,
    vendor_status,
)
from ...transports.graphql import GraphQLClient
from ...utils.logging import log_performance

DEFAULT_ENDPOINT = "https://api.mews.com/graphql"

RESERVATION_STATE_MAP = {
    "Confirmed": BookingStatus.CONFIRMED,
    "Optional": BookingStatus.CONFIRMED,
    "Started": BookingStatus.CHECKED_IN,
    "Processed": BookingStatus.CHECKED_OUT,
    "Canceled": BookingStatus.CANCELED,
}

RESOURCE_STATE_MAP = {
    "Clean": RoomStatus.AVAILABLE,
    "Inspected": RoomStatus.AVAILABLE,
    "Dirty": RoomStatus.DIRTY,
    "OutOfOrder": RoomStatus.OUT_OF_ORDER,
    "OutOfService": RoomStatus.MAINTENANCE,
}

RESERVATION_STATE_OUT = {
    BookingStatus.CONFIRMED: "Confirmed",
    BookingStatus.CHECKED_IN: "Started",
    BookingStatus.CHECKED_OUT: "Processed",
    BookingStatus.CANCELED: "Canceled",
}

RESOURCE_STATE_OUT = {
    RoomStatus.AVAILABLE: "Clean",
    RoomStatus.DIRTY: "Dirty",
    RoomStatus.OUT_OF_ORDER: "OutOfOrder",
    RoomStatus.MAINTENANCE: "OutOfService",
}

RESERVATIONS_QUERY = """
query GetReservations($enterpriseId: ID!, $since: DateTime, $first: Int) {
  reservations(
    enterpriseId: $enterpriseId
    updatedUtc: { value: $since, operator: GREATER_THAN_OR_EQUAL }
    first: $first
  ) {
    id
    state
    number
    startUtc
    endUtc
    adultCount
    childCount
    notes
    customer { id firstName lastName email phone }
    assignedResource { id name }
    totalCost { amount currency }
    updatedUtc
  }
}
"""

RESOURCES_QUERY = """
query GetRooms($enterpriseId: ID!) {
  resources(enterpriseId: $enterpriseId) {
    id
    name
    state
    floor
    capacity
    category { name }
    features
  }
}
"""

CUSTOMERS_QUERY = """
query GetCustomers($enterpriseId: ID!, $first: Int) {
  customers(enterpriseId: $enterpriseId, first: $first) {
    id
    firstName
    lastName
    email
    phone
    nationalityCode
    loyaltyLevel
    stayCount
    totalRevenue { amount currency }
  }
}
"""

ENTERPRISE_QUERY = """
query GetEnterprise($enterpriseId: ID!) {
  enterprise(id: $enterpriseId) { id name currency }
}
"""

ADD_RESERVATION_MUTATION = """
mutation AddReservation($enterpriseId: ID!, $input: ReservationInput!) {
  addReservation(enterpriseId: $enterpriseId, input: $input) { id number }
}
"""

CANCEL_RESERVATION_MUTATION = """
mutation CancelReservation($enterpriseId: ID!, $reservationId: ID!) {
  cancelReservation(enterpriseId: $enterpriseId, reservationId: $reservationId) { id state }
}
"""

UPDATE_RESERVATION_MUTATION = """
mutation UpdateReservation($enterpriseId: ID!, $reservationId: ID!, $input: ReservationUpdateInput!) {
  updateReservation(enterpriseId: $enterpriseId, reservationId: $reservationId, input: $input) { id state }
}
"""

START_RESERVATION_MUTATION = """
mutation StartReservation($enterpriseId: ID!, $reservationId: ID!, $resourceId: ID) {
  startReservation(enterpriseId: $enterpriseId, reservationId: $reservationId, resourceId: $resourceId) { id state }
}
"""

PROCESS_RESERVATION_MUTATION = """
mutation ProcessReservation($enterpriseId: ID!, $reservationId: ID!, $closeBills: Boolean) {
  processReservation(enterpriseId: $enterpriseId, reservationId: $reservationId, closeBills: $closeBills) { id state }
}
"""

UPDATE_RESOURCE_STATE_MUTATION = """
mutation UpdateResourceState($enterpriseId: ID!, $resourceId: ID!, $state: ResourceState!) {
  updateResourceState(enterpriseId: $enterpriseId, resourceId: $resourceId, state: $state) { id state }
}
"""


class MewsAdapter(BaseAdapter):
    """Mews GraphQL adapter"""

    metadata = AdapterMetadata(
        vendor="mews",
        display_name="Mews",
        protocol="graphql",
        auth_type="bearer",
        rate_limit=RateLimit(requests_per_minute=300, requests_per_hour=15000),
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
        EntityType.BOOKINGS: "id",
        EntityType.ROOMS: "id",
        EntityType.GUESTS: "id",
    }

    def __init__(
        self,
        access_token: Optional[str] = None,
        *,
        key: Optional[str] = None,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 30.0,
        transport: Optional[GraphQLClient] = None,
    ):
        super().__init__(key)
        if transport is None:
            if not access_token:
                raise IntegrationError(
                    "Mews requires an access token",
                    status_code=400,
                    code="CONFIGURATION_ERROR",
                )
            transport = GraphQLClient(
                endpoint,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=timeout,
                service_name="mews",
            )
        self.transport = transport

    @log_performance("fetch_bookings")
    async def fetch_booking_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        variables: Dict[str, Any] = {"enterpriseId": self.property_id(scope)}
        if options and options.since:
            variables["since"] = options.since.isoformat()
        if options and options.limit:
            variables["first"] = options.limit

        data = await self.transport.query(RESERVATIONS_QUERY, variables)
        return data.get("reservations") or []

    @log_performance("fetch_rooms")
    async def fetch_room_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        data = await self.transport.query(RESOURCES_QUERY, {"enterpriseId": self.property_id(scope)})
        return data.get("resources") or []

    @log_performance("fetch_guests")
    async def fetch_guest_payloads(
        self, scope: HotelScope, options: Optional[SyncOptions] = None
    ) -> List[Any]:
        variables: Dict[str, Any] = {"enterpriseId": self.property_id(scope)}
        if options and options.limit:
            variables["first"] = options.limit
        data = await self.transport.query(CUSTOMERS_QUERY, variables)
        return data.get("customers") or []

    async def create_booking(self, scope: HotelScope, draft: BookingDraft) -> str:
        data = await self.transport.mutate(
            ADD_RESERVATION_MUTATION,
            {
                "enterpriseId": self.property_id(scope),
                "input": {
                    "customerId": draft.guest_id,
                    "customer": {
                        "firstName": draft.first_name,
                        "lastName": draft.last_name,
                        "email": draft.email,
                        "phone": draft.phone,
                    },
                    "resourceId": draft.room_id,
                    "startUtc": draft.check_in_date.isoformat(),
                    "endUtc": draft.check_out_date.isoformat(),
                    "adultCount": draft.adults,
                    "childCount": draft.children,
                    "notes": draft.special_requests,
                },
            },
        )
        reservation = data.get("addReservation") or {}
        if not reservation.get("id"):
            raise IntegrationError(
                "Mews did not return a reservation ID",
                status_code=502,
                code="INVALID_RESPONSE",
            )
        return str(reservation["id"])

    async def cancel_booking(self, scope: HotelScope, external_id: str) -> None:
        await self.transport.mutate(
            CANCEL_RESERVATION_MUTATION,
            {"enterpriseId": self.property_id(scope), "reservationId": external_id},
        )

    async def update_booking(self, scope: HotelScope, external_id: str, patch: BookingPatch) -> None:
        self._require_changes(patch)
        changes: Dict[str, Any] = {}
        if patch.check_in_date is not None:
            changes["startUtc"] = patch.check_in_date.isoformat()
        if patch.check_out_date is not None:
            changes["endUtc"] = patch.check_out_date.isoformat()
        if patch.room_id is not None:
            changes["resourceId"] = patch.room_id
        if patch.status is not None:
            changes["state"] = vendor_status(RESERVATION_STATE_OUT, patch.status, "booking")
        if patch.adults is not None:
            changes["adultCount"] = patch.adults
        if patch.children is not None:
            changes["childCount"] = patch.children

        await self.transport.mutate(
            UPDATE_RESERVATION_MUTATION,
            {
                "enterpriseId": self.property_id(scope),
                "reservationId": external_id,
                "input": changes,
            },
        )
        self.logger.info("booking_updated", external_id=external_id)

    async def check_in(self, scope: HotelScope, external_id: str, room_id: Optional[str] = None) -> None:
        await self.transport.mutate(
            START_RESERVATION_MUTATION,
            {
                "enterpriseId": self.property_id(scope),
                "reservationId": external_id,
                "resourceId": room_id,
            },
        )
        self.logger.info("booking_checked_in", external_id=external_id)

    async def check_out(self, scope: HotelScope, external_id: str) -> None:
        await self.transport.mutate(
            PROCESS_RESERVATION_MUTATION,
            {
                "enterpriseId": self.property_id(scope),
                "reservationId": external_id,
                "closeBills": True,
            },
        )
        self.logger.info("booking_checked_out", external_id=external_id)

    async def update_room_status(self, scope: HotelScope, room_id: str, status: RoomStatus) -> None:
        await self.transport.mutate(
            UPDATE_RESOURCE_STATE_MUTATION,
            {
                "enterpriseId": self.property_id(scope),
                "resourceId": room_id,
                "state": vendor_status(RESOURCE_STATE_OUT, status, "room"),
            },
        )
        self.logger.info("room_status_updated", room_id=room_id, status=getattr(status, "value", status))

    async def test_connection(self, scope: HotelScope) -> ConnectionTestResult:
        try:
            data = await self.transport.query(ENTERPRISE_QUERY, {"enterpriseId": self.property_id(scope)})
        except IntegrationError as e:
            return self._connection_failed(e)

        enterprise = data.get("enterprise") or {}
        return ConnectionTestResult(
            success=True,
            message=f"Connected to Mews - {enterprise.get('name', 'unknown enterprise')}",
            details={
                "vendor": self.metadata.vendor,
                "enterprise_id": enterprise.get("id"),
                "currency": enterprise.get("currency"),
            },
        )

    def normalize_booking(self, payload: Dict[str, Any]) -> NormalizedBooking:
        reservation_id = str(require_field(payload, "id", "Mews reservation"))
        customer = payload.get("customer") or {}
        resource = payload.get("assignedResource") or {}
        total = payload.get("totalCost") or {}
        return NormalizedBooking(
            external_id=reservation_id,
            confirmation_number=payload.get("number"),
            status=map_status(RESERVATION_STATE_MAP, payload.get("state"), "booking"),
            check_in_date=parse_date(payload.get("startUtc")),
            check_out_date=parse_date(payload.get("endUtc")),
            guest_id=customer.get("id"),
            guest_name=full_name(customer.get("firstName"), customer.get("lastName")),
            room_id=resource.get("id"),
            room_number=resource.get("name"),
            number_of_guests=to_int(payload.get("adultCount"), 1) + to_int(payload.get("childCount"), 0),
            total_amount=to_amount(total.get("amount")),
            currency=total.get("currency"),
            special_requests=payload.get("notes"),
            last_modified=parse_datetime(payload.get("updatedUtc")),
        )

    def normalize_room(self, resource: Dict[str, Any]) -> NormalizedRoom:
        resource_id = str(require_field(resource, "id", "Mews resource"))
        category = resource.get("category") or {}
        return NormalizedRoom(
            external_id=resource_id,
            room_number=str(resource.get("name") or resource_id),
            status=map_status(RESOURCE_STATE_MAP, resource.get("state"), "room"),
            floor=to_int(resource.get("floor")),
            room_type=category.get("name"),
            max_occupancy=to_int(resource.get("capacity")),
            amenities=list(resource.get("features") or []),
        )

    def normalize_guest(self, customer: Dict[str, Any]) -> NormalizedGuest:
        customer_id = str(require_field(customer, "id", "Mews customer"))
        revenue = customer.get("totalRevenue") or {}
        return NormalizedGuest(
            external_id=customer_id,
            first_name=customer.get("firstName") or "",
            last_name=customer.get("lastName") or "",
            email=customer.get("email"),
            phone=customer.get("phone"),
            country=customer.get("nationalityCode"),
            loyalty_tier=customer.get("loyaltyLevel"),
            total_stays=to_int(customer.get("stayCount")),
            total_spent=to_amount(revenue.get("amount")),
        )
