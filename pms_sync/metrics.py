"""
Prometheus metrics for PMS Sync
PMS response times, retries, sync outcomes and provider availability
"""

from typing import Dict

import structlog
from prometheus_client import Counter, Gauge, Histogram

logger = structlog.get_logger("pms_sync.metrics")

# PMS call metrics
pms_response_time = Histogram(
    'pms_sync_response_seconds',
    'PMS adapter operation duration',
    ['provider', 'vendor', 'operation'],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

pms_operations_total = Counter(
    'pms_sync_operations_total',
    'Total PMS adapter operations',
    ['provider', 'vendor', 'operation', 'status']
)

pms_retries_total = Counter(
    'pms_sync_retries_total',
    'Retries scheduled after a retryable PMS failure',
    ['service', 'code']
)

# Sync metrics
sync_runs_total = Counter(
    'pms_sync_runs_total',
    'Sync invocations by final state',
    ['provider', 'entity_type', 'state']
)

sync_records_total = Counter(
    'pms_sync_records_total',
    'Records reconciled per sync',
    ['provider', 'entity_type', 'outcome']
)

pms_availability = Gauge(
    'pms_sync_provider_availability',
    'PMS provider availability from the last connection test (0-1)',
    ['provider', 'vendor']
)

_availability_status: Dict[str, bool] = {}


def observe_operation(provider: str, vendor: str, operation: str, duration: float, success: bool) -> None:
    pms_response_time.labels(provider=provider, vendor=vendor, operation=operation).observe(duration)
    pms_operations_total.labels(
        provider=provider,
        vendor=vendor,
        operation=operation,
        status="success" if success else "failure",
    ).inc()


def record_retry(service: str, code: str) -> None:
    pms_retries_total.labels(service=service, code=code or "unknown").inc()


def record_sync(provider: str, entity_type: str, state: str, processed: int, failed: int) -> None:
    sync_runs_total.labels(provider=provider, entity_type=entity_type, state=state).inc()
    if processed:
        sync_records_total.labels(provider=provider, entity_type=entity_type, outcome="processed").inc(processed)
    if failed:
        sync_records_total.labels(provider=provider, entity_type=entity_type, outcome="failed").inc(failed)


def update_availability(provider: str, vendor: str, is_available: bool) -> None:
    """Update the availability gauge, logging when a provider flips state"""
    pms_availability.labels(provider=provider, vendor=vendor).set(1.0 if is_available else 0.0)

    previous_status = _availability_status.get(provider)
    if previous_status is not None and previous_status != is_available:
        logger.warning(
            "pms_availability_changed",
            provider=provider,
            vendor=vendor,
            previous_status=previous_status,
            current_status=is_available,
        )
    _availability_status[provider] = is_available
