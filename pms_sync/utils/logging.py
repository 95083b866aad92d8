"""
Secure Logging Utilities for PMS Sync
Structured logging via structlog with PII masking and correlation IDs
"""

import logging
import re
import sys
import time
import uuid
from contextlib import contextmanager
from functools import wraps
from typing import Any, Dict, Iterator, Optional
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

import structlog

from pms_sync.metrics import observe_operation

# Keys whose values never reach log output in clear text
PII_KEYS = {
    "email",
    "phone",
    "first_name",
    "last_name",
    "guest_name",
    "firstName",
    "lastName",
    "guestName",
}

EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")

SENSITIVE_PARAMS = {
    "api_key", "apikey", "key", "token", "secret",
    "password", "pwd", "auth", "authorization",
    "client_secret", "client_id", "access_token",
    "refresh_token", "session", "sid",
}


def _mask(value: Any) -> str:
    text = str(value)
    if len(text) <= 2:
        return "***"
    return f"{text[0]}***{text[-1]}"


def mask_pii(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor masking guest-identifying fields"""
    for key, value in list(event_dict.items()):
        if value is None:
            continue
        if key in PII_KEYS:
            event_dict[key] = _mask(value)
        elif isinstance(value, str) and key != "event":
            event_dict[key] = EMAIL_PATTERN.sub("<EMAIL>", value)
    return event_dict


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structlog and the stdlib root logger once at process start"""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            mask_pii,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def get_logger(name: Optional[str] = None) -> Any:
    """Get a structlog logger bound to ``name``"""
    return structlog.get_logger(name) if name else structlog.get_logger()


def bind_correlation_id(value: Optional[str] = None) -> str:
    """Set or generate the correlation ID carried by every log line in this context"""
    correlation = value or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(correlation_id=correlation)
    return correlation


def current_correlation_id() -> Optional[str]:
    return structlog.contextvars.get_contextvars().get("correlation_id")


@contextmanager
def correlation_scope(value: Optional[str] = None, **extra: Any) -> Iterator[str]:
    """Bind a correlation ID (plus extra context) for the duration of a block"""
    correlation = value or str(uuid.uuid4())
    with structlog.contextvars.bound_contextvars(correlation_id=correlation, **extra):
        yield correlation


def log_performance(operation: str):
    """
    Decorator to log and measure duration and outcome of async adapter methods

    Usage:
        @log_performance("fetch_bookings")
        async def fetch_booking_payloads(self, ...):
            ...
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            start_time = time.perf_counter()
            error = None
            try:
                return await func(self, *args, **kwargs)
            except Exception as e:
                error = e
                raise
            finally:
                duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
                metadata = getattr(self, "metadata", None)
                if metadata is not None:
                    observe_operation(
                        getattr(self, "key", metadata.vendor),
                        metadata.vendor,
                        operation,
                        duration_ms / 1000,
                        error is None,
                    )
                logger = getattr(self, "logger", None) or get_logger(func.__module__)
                if error is not None:
                    logger.error(
                        "api_call_failed",
                        operation=operation,
                        duration_ms=duration_ms,
                        error=str(error),
                        error_type=type(error).__name__,
                    )
                else:
                    logger.info("api_call_completed", operation=operation, duration_ms=duration_ms)

        return wrapper

    return decorator


def sanitize_url(url: str) -> str:
    """
    Sanitize URL for logging by removing sensitive query parameters

    Args:
        url: URL to sanitize

    Returns:
        Sanitized URL safe for logging
    """
    parsed = urlparse(url)
    query_params = parse_qs(parsed.query)

    sanitized_params = {}
    for param, values in query_params.items():
        if param.lower() in SENSITIVE_PARAMS:
            sanitized_params[param] = ["<REDACTED>"]
        else:
            sanitized_params[param] = values

    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        parsed.path,
        parsed.params,
        urlencode(sanitized_params, doseq=True),
        parsed.fragment,
    ))
