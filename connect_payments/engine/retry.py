"""
Exponential backoff retry logic for payment processor calls.

Retries transient failures (429 rate limits, 5xx, network timeouts) with
exponential backoff. Permanent failures (4xx: bad account, refused routing)
are raised immediately. Calls that create money movement must carry an
idempotency key so a retried request cannot double-charge.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger("connect_payments.retry")

T = TypeVar("T")

RETRIABLE_STATUS_CODES = {429, 500, 502, 503, 504}
MAX_RETRIES = 3
BASE_DELAY = 0.5
MAX_DELAY = 8.0


class ProviderError(Exception):
    """Base exception for payment processor errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        retriable: bool = True,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retriable = retriable
        self.code = code


class RateLimitError(ProviderError):
    """429 Too Many Requests from the processor."""

    def __init__(self, message: str = "Rate limited", retry_after: float | None = None):
        super().__init__(message, status_code=429, retriable=True, code="rate_limit")
        self.retry_after = retry_after


class ProcessorTimeout(ProviderError):
    """The request did not complete within the configured timeout."""

    def __init__(self, message: str = "Processor request timed out"):
        super().__init__(message, status_code=504, retriable=True, code="timeout")


class PermanentError(ProviderError):
    """Non-retriable error (e.g. invalid account, refused routing, bad request)."""

    def __init__(self, message: str, status_code: int = 400, code: Optional[str] = None):
        super().__init__(message, status_code=status_code, retriable=False, code=code)


async def with_retry(
    func: Callable[..., Any],
    *args: Any,
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    **kwargs: Any,
) -> Any:
    """
    Execute an async function with exponential backoff on retriable errors.

    Args:
        func: Async callable to execute.
        max_retries: Retries after the first attempt (0 = single attempt).
        base_delay: First backoff interval in seconds; doubles per attempt.

    Returns:
        The result of the function call.

    Raises:
        ProviderError: On permanent failure or exhausted retries.
    """
    delay = base_delay

    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except ProviderError as e:
            if not e.retriable or attempt >= max_retries:
                if e.retriable:
                    logger.error("Exhausted %d retries for processor call: %s", max_retries, e)
                raise

            sleep_for = min(delay, MAX_DELAY)
            if isinstance(e, RateLimitError) and e.retry_after:
                sleep_for = min(e.retry_after, MAX_DELAY)

            logger.warning(
                "Retriable error on attempt %d/%d: %s - sleeping %.1fs",
                attempt + 1,
                max_retries + 1,
                e,
                sleep_for,
            )
            if sleep_for > 0:
                await asyncio.sleep(sleep_for)
            delay = min(delay * 2, MAX_DELAY)

    raise ProviderError("Unknown error after retries")
