"""
PMS Sync Orchestrator
Drives bulk syncs and webhook ingestion for one (hotel, provider) at a time
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from pms_sync.contracts import (
    ConnectionTestResult,
    EntityType,
    HotelScope,
    IntegrationError,
    NormalizedRecord,
    PMSProviderAdapter,
    SyncOptions,
)
from pms_sync.metrics import record_sync, update_availability
from pms_sync.notifications import (
    ENTITY_SYNCED_EVENTS,
    SYNC_COMPLETED,
    SYNC_FAILED,
    Notifier,
    safe_emit,
)
from pms_sync.reconciliation import ReconciliationResult, Reconciler
from pms_sync.registry import AdapterRegistry
from pms_sync.utils.logging import correlation_scope, get_logger
from pms_sync.webhooks import WebhookPayload, verify_webhook_signature

logger = get_logger("pms_sync.sync")


class SyncState(str, Enum):
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


@dataclass
class SyncError:
    external_id: str
    message: str
    code: Optional[str] = None


@dataclass
class SyncSummary:
    """Outcome of one sync invocation"""

    sync_id: str
    provider: str
    hotel_id: str
    entity_type: EntityType
    state: SyncState = SyncState.STARTED
    processed: int = 0
    failed: int = 0
    records: List[NormalizedRecord] = field(default_factory=list)
    errors: List[SyncError] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def attempted(self) -> int:
        return self.processed + self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sync_id": self.sync_id,
            "provider": self.provider,
            "hotel_id": self.hotel_id,
            "entity_type": self.entity_type.value,
            "state": self.state.value,
            "processed": self.processed,
            "failed": self.failed,
            "errors": [
                {"external_id": e.external_id, "message": e.message, "code": e.code}
                for e in self.errors
            ],
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class SyncOrchestrator:
    """
    Runs fetch -> normalize -> upsert for a hotel against one provider.

    Each record is normalized and upserted on its own so a single bad record
    (unmapped status, malformed payload, rejected upsert) never aborts the
    batch; it is counted as failed under its vendor id, or its position when
    it carries none. A failing bulk fetch is reported as ``pms.sync.failed``
    and raised to the caller as ``SYNC_FAILED``.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        reconciler: Reconciler,
        notifier: Optional[Notifier] = None,
        webhook_secrets: Optional[Mapping[str, str]] = None,
    ):
        self.registry = registry
        self.reconciler = reconciler
        self.notifier = notifier
        self.webhook_secrets = dict(webhook_secrets or {})

    def _upsert(self, entity_type: EntityType, hotel_id: str, provider: str, record: Any):
        if entity_type is EntityType.BOOKINGS:
            return self.reconciler.upsert_booking(hotel_id, provider, record)
        if entity_type is EntityType.ROOMS:
            return self.reconciler.upsert_room(hotel_id, provider, record)
        return self.reconciler.upsert_guest(hotel_id, provider, record)

    async def sync(
        self,
        hotel_id: str,
        provider_key: str,
        entity_type: Union[EntityType, str],
        options: Optional[SyncOptions] = None,
        *,
        external_hotel_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SyncSummary:
        try:
            entity_type = EntityType(entity_type)
        except ValueError as e:
            raise IntegrationError.not_supported(str(entity_type)) from e
        adapter = self.registry.require(provider_key)
        if not adapter.supports(entity_type):
            raise IntegrationError.not_supported(entity_type.value)

        scope = HotelScope(hotel_id=hotel_id, external_hotel_id=external_hotel_id)
        summary = SyncSummary(
            sync_id=str(uuid.uuid4()),
            provider=provider_key,
            hotel_id=hotel_id,
            entity_type=entity_type,
        )

        with correlation_scope(
            summary.sync_id, hotel_id=hotel_id, provider=provider_key, entity_type=entity_type.value
        ):
            logger.info("sync_started", sync_id=summary.sync_id)

            try:
                payloads = await adapter.fetch_payloads(entity_type, scope, options)
            except IntegrationError as e:
                if e.is_not_supported:
                    raise
                await self._fail(summary, e)
                raise IntegrationError(
                    f"Failed to sync {entity_type.value}: {e.message}",
                    status_code=502,
                    code="SYNC_FAILED",
                    cause=e,
                    details={"sync_id": summary.sync_id, "cause_code": e.code},
                ) from e
            except Exception as e:
                await self._fail(summary, e)
                raise IntegrationError(
                    f"Failed to sync {entity_type.value}: {e}",
                    status_code=502,
                    code="SYNC_FAILED",
                    cause=e,
                    details={"sync_id": summary.sync_id},
                ) from e

            for position, payload in enumerate(payloads or [], start=1):
                if cancel_event is not None and cancel_event.is_set():
                    summary.state = SyncState.CANCELED
                    logger.warning("sync_canceled", sync_id=summary.sync_id, processed=summary.processed)
                    break
                await self._process_record(summary, adapter, entity_type, position, payload)

            if summary.state is not SyncState.CANCELED:
                summary.state = SyncState.COMPLETED
            summary.completed_at = datetime.now(timezone.utc)

            await safe_emit(
                self.notifier,
                SYNC_COMPLETED,
                {
                    "hotel_id": hotel_id,
                    "provider": provider_key,
                    "sync_id": summary.sync_id,
                    "entity_type": entity_type.value,
                    "state": summary.state.value,
                    "processed": summary.processed,
                    "failed": summary.failed,
                    "started_at": summary.started_at.isoformat(),
                    "completed_at": summary.completed_at.isoformat(),
                },
            )
            logger.info(
                "sync_completed",
                sync_id=summary.sync_id,
                state=summary.state.value,
                processed=summary.processed,
                failed=summary.failed,
            )
            record_sync(provider_key, entity_type.value, summary.state.value, summary.processed, summary.failed)
        return summary

    async def _process_record(
        self,
        summary: SyncSummary,
        adapter: PMSProviderAdapter,
        entity_type: EntityType,
        position: int,
        payload: Any,
    ) -> None:
        record = None
        try:
            record = adapter.normalize(entity_type, payload)
            result = await self._upsert(entity_type, summary.hotel_id, summary.provider, record)
        except Exception as e:
            if record is not None:
                external_id = record.external_id
            else:
                external_id = adapter.payload_id(entity_type, payload) or f"#{position}"
            summary.failed += 1
            summary.errors.append(
                SyncError(
                    external_id=external_id,
                    message=str(e),
                    code=getattr(e, "code", None),
                )
            )
            logger.warning(
                "record_sync_failed",
                sync_id=summary.sync_id,
                external_id=external_id,
                stage="upsert" if record is not None else "normalize",
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        summary.processed += 1
        summary.records.append(record)
        await safe_emit(
            self.notifier,
            ENTITY_SYNCED_EVENTS[entity_type.singular],
            {
                "hotel_id": summary.hotel_id,
                "provider": summary.provider,
                "sync_id": summary.sync_id,
                "external_id": record.external_id,
                "record_id": result.record_id,
                "created": result.created,
                "changed_fields": sorted(result.changed),
            },
        )

    async def _fail(self, summary: SyncSummary, error: Exception) -> None:
        summary.state = SyncState.FAILED
        summary.completed_at = datetime.now(timezone.utc)
        logger.error(
            "sync_failed",
            sync_id=summary.sync_id,
            error=str(error),
            error_type=type(error).__name__,
        )
        record_sync(summary.provider, summary.entity_type.value, summary.state.value, 0, 0)
        error_payload = (
            error.to_dict()
            if isinstance(error, IntegrationError)
            else {"code": "SYNC_FAILED", "message": str(error)}
        )
        await safe_emit(
            self.notifier,
            SYNC_FAILED,
            {
                "hotel_id": summary.hotel_id,
                "provider": summary.provider,
                "sync_id": summary.sync_id,
                "entity_type": summary.entity_type.value,
                "error": error_payload,
                "started_at": summary.started_at.isoformat(),
                "failed_at": summary.completed_at.isoformat(),
            },
        )

    async def sync_bookings(
        self, hotel_id: str, provider_key: str, options: Optional[SyncOptions] = None, **kwargs
    ) -> SyncSummary:
        return await self.sync(hotel_id, provider_key, EntityType.BOOKINGS, options, **kwargs)

    async def sync_rooms(
        self, hotel_id: str, provider_key: str, options: Optional[SyncOptions] = None, **kwargs
    ) -> SyncSummary:
        return await self.sync(hotel_id, provider_key, EntityType.ROOMS, options, **kwargs)

    async def sync_guests(
        self, hotel_id: str, provider_key: str, options: Optional[SyncOptions] = None, **kwargs
    ) -> SyncSummary:
        return await self.sync(hotel_id, provider_key, EntityType.GUESTS, options, **kwargs)

    async def sync_all(
        self,
        hotel_id: str,
        provider_key: str,
        options: Optional[SyncOptions] = None,
        **kwargs,
    ) -> Dict[EntityType, SyncSummary]:
        """Bookings, rooms then guests, skipping entity types the provider lacks"""
        adapter = self.registry.require(provider_key)
        summaries: Dict[EntityType, SyncSummary] = {}
        for entity_type in (EntityType.BOOKINGS, EntityType.ROOMS, EntityType.GUESTS):
            if not adapter.supports(entity_type):
                logger.info(
                    "sync_skipped",
                    hotel_id=hotel_id,
                    provider=provider_key,
                    entity_type=entity_type.value,
                )
                continue
            summaries[entity_type] = await self.sync(hotel_id, provider_key, entity_type, options, **kwargs)
        return summaries

    async def test_connection(
        self, hotel_id: str, provider_key: str, external_hotel_id: Optional[str] = None
    ) -> ConnectionTestResult:
        """Check a provider connection and record its availability"""
        adapter = self.registry.require(provider_key)
        result = await adapter.test_connection(
            HotelScope(hotel_id=hotel_id, external_hotel_id=external_hotel_id)
        )
        update_availability(provider_key, adapter.metadata.vendor, result.success)
        logger.info(
            "connection_tested",
            hotel_id=hotel_id,
            provider=provider_key,
            success=result.success,
        )
        return result

    async def ingest_webhook(
        self,
        hotel_id: str,
        provider_key: str,
        payload: Union[Mapping[str, Any], WebhookPayload],
        signature: Optional[str] = None,
        raw_body: Optional[Union[bytes, str]] = None,
    ) -> ReconciliationResult:
        """
        Upsert the single booking carried by a webhook.

        When a secret is configured for the provider the signature is checked
        over ``raw_body`` if given, otherwise over the compact JSON of the
        payload.
        """
        adapter = self.registry.require(provider_key)

        if isinstance(payload, WebhookPayload):
            envelope = payload
        elif not isinstance(payload, Mapping):
            raise IntegrationError.invalid_payload("Webhook payload must be a JSON object")
        else:
            try:
                envelope = WebhookPayload.model_validate(dict(payload))
            except ValidationError as e:
                raise IntegrationError.invalid_payload(
                    "Invalid webhook payload",
                    fields=[".".join(str(part) for part in err["loc"]) for err in e.errors()],
                ) from e
        if not envelope.booking:
            raise IntegrationError(
                "Webhook payload is missing booking",
                status_code=400,
                code="MISSING_BOOKING",
            )

        secret = self.webhook_secrets.get(provider_key)
        if secret:
            if raw_body is not None:
                body = raw_body
            elif isinstance(payload, WebhookPayload):
                body = payload.model_dump(mode="json", exclude_unset=True)
            else:
                body = payload
            if not verify_webhook_signature(body, signature, secret):
                logger.warning("webhook_signature_invalid", hotel_id=hotel_id, provider=provider_key)
                raise IntegrationError(
                    "Invalid webhook signature",
                    status_code=401,
                    code="INVALID_SIGNATURE",
                )

        correlation_id = envelope.correlation_id or str(uuid.uuid4())
        with correlation_scope(correlation_id, hotel_id=hotel_id, provider=provider_key):
            booking = adapter.normalize_booking(envelope.booking)
            result = await self.reconciler.upsert_booking(hotel_id, provider_key, booking)

            logger.info(
                "webhook_ingested",
                correlation_id=correlation_id,
                hotel_id=hotel_id,
                provider=provider_key,
                external_id=booking.external_id,
                created=result.created,
                changed_fields=sorted(result.changed),
            )
            await safe_emit(
                self.notifier,
                ENTITY_SYNCED_EVENTS["booking"],
                {
                    "hotel_id": hotel_id,
                    "provider": provider_key,
                    "correlation_id": correlation_id,
                    "external_id": booking.external_id,
                    "record_id": result.record_id,
                    "created": result.created,
                    "changed_fields": sorted(result.changed),
                },
            )
        return result
