"""
Bounded retry for partner API calls.

A ``RetryPolicy`` bundles the attempt budget, the backoff schedule and the
retryability predicate. ``retry_async`` runs an operation under a policy.
The policy holds no per-call state: every ``retry_async`` call counts its own
attempts, so concurrent or repeated runs never share a budget.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar
import logging

from core.exceptions import (
    GrowiApiError,
    NonRetryableError,
    RetriesExhaustedError,
    RetryableError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]
RetryHook = Callable[[int, BaseException, float], None]


def is_retryable_growi_error(error: BaseException) -> bool:
    """
    Retry network failures, 429, 5xx, and 422 responses that Growi uses to
    report its own request timeouts. Everything else is fatal.
    """
    if isinstance(error, NonRetryableError):
        return False
    if isinstance(error, RetryableError):
        return True
    if not isinstance(error, GrowiApiError):
        return False

    status = error.status_code
    if status == 0 or status == 429 or status >= 500:
        return True

    if status == 422:
        text = f"{error.message} {error.response_body or ''}".lower()
        return "request timeout" in text

    return False


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay unit in seconds
        backoff: "linear" (n * base), "exponential" (base * 2**(n-1)) or "constant"
        should_retry: Predicate deciding whether an error is worth another attempt
    """

    max_attempts: int = 4
    base_delay: float = 1.0
    backoff: str = "linear"
    should_retry: Callable[[BaseException], bool] = is_retryable_growi_error

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")
        if self.backoff not in ("linear", "exponential", "constant"):
            raise ValueError(f"Unknown backoff: {self.backoff}")

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        if self.backoff == "linear":
            return self.base_delay * attempt
        if self.backoff == "exponential":
            return self.base_delay * (2 ** (attempt - 1))
        return self.base_delay


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
    on_retry: Optional[RetryHook] = None,
) -> T:
    """
    Run ``operation`` until it succeeds, fails fatally, or the policy's
    attempt budget is spent.

    Raises:
        The operation's own exception when ``policy.should_retry`` rejects it.
        RetriesExhaustedError: wrapping the last error once the budget is spent.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as e:
            if not policy.should_retry(e):
                raise

            if attempt >= policy.max_attempts:
                raise RetriesExhaustedError(
                    f"Gave up after {attempt} attempts: {getattr(e, 'message', str(e))}",
                    attempts=attempt,
                    last_error=e,
                )

            delay = policy.delay_after(attempt)
            if on_retry is not None:
                on_retry(attempt, e, delay)
            await sleep(delay)
            attempt += 1
