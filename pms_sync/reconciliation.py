"""
Reconciliation of normalized PMS records into the local keyed store
"""

import inspect
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Tuple, Union

from pms_sync.contracts import NormalizedBooking, NormalizedGuest, NormalizedRoom
from pms_sync.utils.logging import get_logger

logger = get_logger("pms_sync.reconciliation")

NormalizedRecord = Union[NormalizedBooking, NormalizedRoom, NormalizedGuest]

# Fields refreshed on an existing record; identity fields never change
BOOKING_FIELDS: Tuple[str, ...] = (
    "status",
    "guest_id",
    "guest_name",
    "room_id",
    "room_number",
    "confirmation_number",
    "check_in_date",
    "check_out_date",
    "number_of_guests",
    "total_amount",
    "currency",
    "special_requests",
    "last_modified",
)

ROOM_FIELDS: Tuple[str, ...] = (
    "room_number",
    "status",
    "floor",
    "room_type",
    "max_occupancy",
    "amenities",
)

GUEST_FIELDS: Tuple[str, ...] = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "country",
    "loyalty_tier",
    "total_stays",
    "total_spent",
)


class RecordStore(Protocol):
    """
    Keyed persistence boundary, one per entity family.

    Implementations may be sync or async; the reconciler awaits whatever
    comes back when it is awaitable.
    """

    def find_by_external_id(self, hotel_id: str, external_id: str) -> Any:
        ...

    def create(self, record: Dict[str, Any]) -> Any:
        ...

    def update(self, record_id: str, patch: Dict[str, Any]) -> Any:
        ...


class InMemoryRecordStore:
    """Dict-backed store keyed by (hotel_id, external_id)"""

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}
        self._index: Dict[Tuple[str, str], str] = {}
        self.create_calls = 0
        self.update_calls = 0

    def find_by_external_id(self, hotel_id: str, external_id: str) -> Optional[Dict[str, Any]]:
        record_id = self._index.get((hotel_id, external_id))
        if record_id is None:
            return None
        return dict(self.records[record_id])

    def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        key = (record["hotel_id"], record["external_id"])
        if key in self._index:
            raise ValueError(f"Record already exists for {key}")
        now = datetime.now(timezone.utc)
        record_id = str(uuid.uuid4())
        stored = {**record, "id": record_id, "created_at": now, "updated_at": now}
        self.records[record_id] = stored
        self._index[key] = record_id
        self.create_calls += 1
        return dict(stored)

    def update(self, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        if record_id not in self.records:
            raise KeyError(record_id)
        self.records[record_id].update(patch)
        self.records[record_id]["updated_at"] = datetime.now(timezone.utc)
        self.update_calls += 1
        return dict(self.records[record_id])

    def all(self, hotel_id: Optional[str] = None) -> list:
        return [
            dict(record)
            for record in self.records.values()
            if hotel_id is None or record["hotel_id"] == hotel_id
        ]

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class ReconciliationResult:
    record_id: str
    external_id: str
    created: bool
    changed: Dict[str, Any]
    record: NormalizedRecord

    @property
    def updated(self) -> bool:
        return not self.created and bool(self.changed)

    @property
    def unchanged(self) -> bool:
        return not self.created and not self.changed


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _record_id(stored: Any) -> str:
    if isinstance(stored, dict):
        return str(stored["id"])
    return str(getattr(stored, "id"))


def _field(stored: Any, name: str) -> Any:
    if isinstance(stored, dict):
        return stored.get(name)
    return getattr(stored, name, None)


class Reconciler:
    """
    Idempotent upserts of normalized records.

    A record already present for (hotel_id, external_id) only receives the
    fields that differ; when nothing differs the store is not written.
    """

    def __init__(self, bookings: RecordStore, rooms: RecordStore, guests: RecordStore):
        self.bookings = bookings
        self.rooms = rooms
        self.guests = guests

    async def upsert_booking(
        self, hotel_id: str, provider: str, booking: NormalizedBooking
    ) -> ReconciliationResult:
        return await self._upsert(self.bookings, BOOKING_FIELDS, hotel_id, provider, booking)

    async def upsert_room(
        self, hotel_id: str, provider: str, room: NormalizedRoom
    ) -> ReconciliationResult:
        return await self._upsert(self.rooms, ROOM_FIELDS, hotel_id, provider, room)

    async def upsert_guest(
        self, hotel_id: str, provider: str, guest: NormalizedGuest
    ) -> ReconciliationResult:
        return await self._upsert(self.guests, GUEST_FIELDS, hotel_id, provider, guest)

    async def _upsert(
        self,
        store: RecordStore,
        fields: Tuple[str, ...],
        hotel_id: str,
        provider: str,
        record: NormalizedRecord,
    ) -> ReconciliationResult:
        values = asdict(record)
        existing = await _resolve(store.find_by_external_id(hotel_id, record.external_id))

        if existing is None:
            created = await _resolve(
                store.create(
                    {
                        "hotel_id": hotel_id,
                        "provider": provider,
                        "external_id": record.external_id,
                        **{name: values[name] for name in fields},
                    }
                )
            )
            logger.debug(
                "record_created",
                hotel_id=hotel_id,
                provider=provider,
                external_id=record.external_id,
            )
            return ReconciliationResult(
                record_id=_record_id(created),
                external_id=record.external_id,
                created=True,
                changed={name: values[name] for name in fields},
                record=record,
            )

        record_id = _record_id(existing)
        patch = {
            name: values[name]
            for name in fields
            if _field(existing, name) != values[name]
        }
        if patch:
            await _resolve(store.update(record_id, patch))
            logger.debug(
                "record_updated",
                hotel_id=hotel_id,
                provider=provider,
                external_id=record.external_id,
                fields=sorted(patch),
            )
        return ReconciliationResult(
            record_id=record_id,
            external_id=record.external_id,
            created=False,
            changed=patch,
            record=record,
        )
