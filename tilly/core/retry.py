"""Backoff for the account listing.

A delivery run can only start once accounts can be enumerated, and a failed
page fetch aborts the whole run. Page fetches are therefore retried a few
times with exponential backoff before ``UserSourceError`` is raised.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tilly.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """How often and how patiently to retry a page fetch."""

    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,)

    def delay_for(self, failed_attempts: int) -> float:
        """Seconds to wait after ``failed_attempts`` consecutive failures."""
        delay = min(self.backoff_base * 2 ** (failed_attempts - 1), self.backoff_max)
        if self.jitter:
            # Spread concurrent runs hitting the same outage
            delay *= 0.5 + random.random()
        return delay


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
) -> T:
    """Await ``fn()`` until it succeeds or ``config.max_attempts`` is used up.

    Exceptions outside ``retryable_exceptions`` propagate on the first
    failure; the last retryable one propagates once attempts run out.
    """
    config = config or RetryConfig()
    if config.max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    failures = 0
    while True:
        try:
            return await fn()
        except config.retryable_exceptions as e:
            failures += 1
            log = logger.bind(operation=operation_name, attempt=failures, error=repr(e))
            if failures >= config.max_attempts:
                log.error("retry_exhausted")
                raise

            delay = config.delay_for(failures)
            log.bind(delay_seconds=round(delay, 2)).warning("retry_scheduled")
            await asyncio.sleep(delay)
