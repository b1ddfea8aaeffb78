"""MSYNC — Retry Controller.

A fixed-delay retry policy plus a generic async wrapper. No exponential
growth and no jitter: request volume is a handful of calls per hour.
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Optional, TypeVar

from app.config import settings
from app.core.errors import FatalAfterRetryError, is_retryable
from app.core.logging import get_logger

logger = get_logger("retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try, how long to wait, and what counts as retryable."""

    max_attempts: int = 3
    delay_seconds: float = 3.0
    retryable: Callable[[BaseException], bool] = field(default=is_retryable)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")

    def single_attempt(self) -> "RetryPolicy":
        """Same policy, one attempt only. Used for appends."""
        return replace(self, max_attempts=1)


def fetch_policy() -> RetryPolicy:
    """Policy for metrics-source queries."""
    return RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        delay_seconds=settings.fetch_retry_delay_seconds,
    )


def sheets_policy() -> RetryPolicy:
    """Policy for sheet reads and in-place overwrites."""
    return RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        delay_seconds=settings.sheets_retry_delay_seconds,
    )


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: Optional[str] = None,
) -> T:
    """Run ``operation`` under ``policy``.

    Non-retryable errors propagate unchanged after the first attempt.
    Retryable errors that survive every attempt are wrapped in
    FatalAfterRetryError.
    """
    label = label or getattr(operation, "__name__", "operation")
    attempt = 1

    while True:
        try:
            return await operation()
        except Exception as e:
            if not policy.retryable(e):
                raise
            if attempt >= policy.max_attempts:
                if policy.max_attempts > 1:
                    logger.error(
                        f"{label} failed after {policy.max_attempts} attempts: {e}",
                        extra={"attempt": policy.max_attempts},
                    )
                raise FatalAfterRetryError(e, policy.max_attempts) from e
            logger.warning(
                f"{label} failed (attempt {attempt}/{policy.max_attempts}): {e}. "
                f"Retrying in {policy.delay_seconds}s",
                extra={"attempt": attempt},
            )
            await policy.sleep(policy.delay_seconds)
        attempt += 1
