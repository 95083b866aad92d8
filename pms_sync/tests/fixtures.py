"""
Shared test fixtures for PMS sync tests
Uses pytest-httpx for mocking HTTP calls
"""

import pytest
from typing import Any, Dict, List

from pms_sync.contracts import HotelScope
from pms_sync.notifications import RecordingNotifier
from pms_sync.reconciliation import InMemoryRecordStore, Reconciler
from pms_sync.resilience import RetryOptions
from pms_sync.transports.rest import RESTClient


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(float(seconds))


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def scope() -> HotelScope:
    return HotelScope(hotel_id="hotel-1", external_hotel_id="PROP1")


@pytest.fixture
def retry_options() -> RetryOptions:
    return RetryOptions(max_retries=3, initial_delay=1.0, max_delay=30.0, backoff_multiplier=2.0)


@pytest.fixture
def rest_client(retry_options, sleep_recorder) -> RESTClient:
    return RESTClient(
        "https://pms.example.com/api",
        headers={"Authorization": "Bearer test-token"},
        retry_options=retry_options,
        timeout=5.0,
        sleep=sleep_recorder,
    )


@pytest.fixture
def stores() -> Dict[str, InMemoryRecordStore]:
    return {
        "bookings": InMemoryRecordStore(),
        "rooms": InMemoryRecordStore(),
        "guests": InMemoryRecordStore(),
    }


@pytest.fixture
def reconciler(stores) -> Reconciler:
    return Reconciler(stores["bookings"], stores["rooms"], stores["guests"])


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def cloudbeds_reservation() -> Dict[str, Any]:
    """Cloudbeds reservation as returned by /reservations"""
    return {
        "reservationID": "CB1001",
        "guestID": "G-77",
        "guestName": "Ava Rivera",
        "guestEmail": "ava@example.com",
        "roomID": "R-205",
        "roomName": "205",
        "status": "confirmed",
        "startDate": "2025-03-01",
        "endDate": "2025-03-04",
        "adults": 2,
        "children": 1,
        "balance": -412.5,
        "currency": "USD",
        "dateModified": "2025-02-20T10:15:00Z",
    }


@pytest.fixture
def opera_reservation() -> Dict[str, Any]:
    """OPERA reservation as returned by /reservations"""
    return {
        "reservationId": "OP-555",
        "confirmationNumber": "CONF-555",
        "reservationStatus": "IN_HOUSE",
        "guestId": "P-9",
        "guestName": {"firstName": "Eugene", "lastName": "Walters"},
        "roomId": "1205",
        "roomNumber": "1205",
        "roomType": "KING",
        "arrivalDate": "2025-04-10",
        "departureDate": "2025-04-12",
        "adults": 1,
        "children": 0,
        "balance": {"amount": 380, "currency": "EUR"},
    }


@pytest.fixture
def mews_reservation() -> Dict[str, Any]:
    """Mews reservation node from the reservations query"""
    return {
        "id": "mews-res-1",
        "state": "Started",
        "number": "4411",
        "startUtc": "2025-05-01T14:00:00Z",
        "endUtc": "2025-05-03T10:00:00Z",
        "adultCount": 2,
        "childCount": 0,
        "customer": {"id": "cust-1", "firstName": "Mia", "lastName": "Chen", "email": "mia@example.com"},
        "assignedResource": {"id": "res-301", "name": "301"},
        "totalCost": {"amount": "199.99", "currency": "EUR"},
        "updatedUtc": "2025-04-28T08:00:00Z",
    }


@pytest.fixture
def protel_reservation() -> Dict[str, Any]:
    """Protel reservation as delivered by webhook (JSON form of the SOAP record)"""
    return {
        "ReservationNo": "P-7001",
        "Status": "Confirmed",
        "GuestId": "4410",
        "RoomNumber": "12",
        "ArrivalDate": "2025-06-01",
        "DepartureDate": "2025-06-05",
        "Adults": 2,
        "Children": 0,
        "TotalAmount": 640,
    }


def soap_response(operation: str, result_xml: str) -> str:
    """Wrap a result fragment in a SOAP response envelope"""
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
        "<soap:Body>"
        f'<{operation}Response xmlns="http://www.protel.net/webservice/">'
        f"<{operation}Result>{result_xml}</{operation}Result>"
        f"</{operation}Response>"
        "</soap:Body>"
        "</soap:Envelope>"
    )


def soap_fault(fault_code: str, fault_string: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
        "<soap:Body>"
        "<soap:Fault>"
        f"<faultcode>{fault_code}</faultcode>"
        f"<faultstring>{fault_string}</faultstring>"
        "</soap:Fault>"
        "</soap:Body>"
        "</soap:Envelope>"
    )
