"""
Retry utilities with exponential backoff for PMS calls
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, FrozenSet, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from pms_sync.contracts import IntegrationError
from pms_sync.metrics import record_retry
from pms_sync.utils.logging import get_logger

logger = get_logger("pms_sync.resilience")

T = TypeVar("T")

DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryOptions:
    """Configuration for retry behavior (delays in seconds)"""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    retryable_status_codes: FrozenSet[int] = field(default=DEFAULT_RETRYABLE_STATUS_CODES)

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        object.__setattr__(self, "retryable_status_codes", frozenset(self.retryable_status_codes))

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay(self, attempt: int) -> float:
        """Sleep before retry number ``attempt`` (zero-based)"""
        return min(self.initial_delay * self.backoff_multiplier ** attempt, self.max_delay)

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in self.retryable_status_codes

    def merged(self, **overrides: Any) -> "RetryOptions":
        """Copy with the non-None overrides applied"""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _is_retryable(exception: BaseException) -> bool:
    return isinstance(exception, IntegrationError) and exception.retryable


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions,
    service_name: str = "pms",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` under the retry policy.

    Only ``IntegrationError`` instances flagged ``retryable`` trigger another
    attempt; anything else propagates on the spot. Once the budget is spent a
    ``MAX_RETRIES_EXCEEDED`` error is raised wrapping the last failure.
    """

    def log_retry_attempt(retry_state):
        exc = retry_state.outcome.exception()
        record_retry(service_name, getattr(exc, "code", None))
        logger.warning(
            "retry_attempt",
            service=service_name,
            attempt=retry_state.attempt_number,
            code=getattr(exc, "code", None),
            error=str(exc),
            next_sleep=retry_state.next_action.sleep if retry_state.next_action else None,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(options.max_attempts),
        wait=wait_exponential(
            multiplier=options.initial_delay,
            exp_base=options.backoff_multiplier,
            min=0,
            max=options.max_delay,
        ),
        retry=retry_if_exception(_is_retryable),
        before_sleep=log_retry_attempt,
        sleep=sleep,
        reraise=False,
    )

    try:
        return await retrying(operation)
    except RetryError as e:
        last_error = e.last_attempt.exception()
        logger.error(
            "retry_exhausted",
            service=service_name,
            attempts=e.last_attempt.attempt_number,
            final_exception=str(last_error),
        )
        raise IntegrationError(
            f"PMS request failed after {options.max_attempts} attempts: {last_error}",
            status_code=502,
            code="MAX_RETRIES_EXCEEDED",
            cause=last_error,
        ) from last_error
