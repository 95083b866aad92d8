"""
PMS Sync

Keeps a hotel's reservations, rooms and guests in step with external
Property Management Systems speaking REST, GraphQL or SOAP/XML:
- vendor adapters normalize remote records into canonical ones
- the sync orchestrator reconciles them into local stores idempotently
"""

from .contracts import (
    PMSProviderAdapter,
    BaseAdapter,
    MockAdapter,
    IntegrationError,
    Capabilities,
    AdapterMetadata,
    RateLimit,
    # Domain models
    BookingStatus,
    RoomStatus,
    EntityType,
    HotelScope,
    SyncOptions,
    NormalizedBooking,
    NormalizedRoom,
    NormalizedGuest,
    BookingDraft,
    BookingPatch,
    NormalizedRecord,
    ConnectionTestResult,
)

from .resilience import RetryOptions, call_with_retry
from .registry import AdapterRegistry, build_adapter, load_registry
from .reconciliation import InMemoryRecordStore, Reconciler, ReconciliationResult, RecordStore
from .notifications import LoggingNotifier, Notifier
from .webhooks import compute_signature, verify_webhook_signature
from .sync import SyncError, SyncOrchestrator, SyncState, SyncSummary
from .config import IntegrationSettings, ProviderConfig

__all__ = [
    # Contracts
    "PMSProviderAdapter",
    "BaseAdapter",
    "MockAdapter",
    "Capabilities",
    "AdapterMetadata",
    "RateLimit",
    # Errors
    "IntegrationError",
    # Enums
    "BookingStatus",
    "RoomStatus",
    "EntityType",
    # Domain models
    "HotelScope",
    "SyncOptions",
    "NormalizedBooking",
    "NormalizedRoom",
    "NormalizedGuest",
    "BookingDraft",
    "BookingPatch",
    "NormalizedRecord",
    "ConnectionTestResult",
    # Resilience
    "RetryOptions",
    "call_with_retry",
    # Registry
    "AdapterRegistry",
    "build_adapter",
    "load_registry",
    # Reconciliation
    "RecordStore",
    "InMemoryRecordStore",
    "Reconciler",
    "ReconciliationResult",
    # Notifications and webhooks
    "Notifier",
    "LoggingNotifier",
    "compute_signature",
    "verify_webhook_signature",
    # Orchestration
    "SyncOrchestrator",
    "SyncSummary",
    "SyncState",
    "SyncError",
    # Configuration
    "IntegrationSettings",
    "ProviderConfig",
]
