"""
Sync event notifications
"""

import inspect
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Tuple

from pms_sync.utils.logging import get_logger

logger = get_logger("pms_sync.notifications")

SYNC_COMPLETED = "pms.sync.completed"
SYNC_FAILED = "pms.sync.failed"
BOOKING_SYNCED = "pms.booking.synced"
ROOM_SYNCED = "pms.room.synced"
GUEST_SYNCED = "pms.guest.synced"

ENTITY_SYNCED_EVENTS = {
    "booking": BOOKING_SYNCED,
    "room": ROOM_SYNCED,
    "guest": GUEST_SYNCED,
}


class Notifier(Protocol):
    """Event sink; ``emit`` may be a plain function or a coroutine"""

    def emit(self, event_name: str, payload: Dict[str, Any]) -> Any:
        ...


class LoggingNotifier:
    """Writes events to the structured log"""

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        logger.info("pms_event", event_name=event_name, **payload)


class RecordingNotifier:
    """Keeps emitted events in memory, for tests and dry runs"""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        self.events.append((event_name, payload))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def safe_emit(
    notifier: Optional[Notifier], event_name: str, payload: Dict[str, Any]
) -> None:
    """
    Deliver an event without letting notifier failures reach the caller.

    A ``timestamp`` is added when the payload has none.
    """
    if notifier is None:
        return
    body = {**payload}
    body.setdefault("timestamp", utc_timestamp())
    try:
        result = notifier.emit(event_name, body)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning(
            "notification_failed",
            event_name=event_name,
            error=str(e),
            error_type=type(e).__name__,
        )
