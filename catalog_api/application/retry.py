"""Bounded retry with exponential backoff for remote calls."""

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from catalog_api.domain.exceptions import RemoteClientError, RemoteRateLimited

logger = structlog.get_logger()

T = TypeVar("T")

# Margin added to an announced rate-limit reset
RATE_LIMIT_MARGIN = 0.5


def _backoff(
    error: RemoteClientError, delay: float, max_delay: float, rate_limit_max_delay: float
) -> float:
    if isinstance(error, RemoteRateLimited) and error.retry_after is not None:
        return min(error.retry_after + RATE_LIMIT_MARGIN, rate_limit_max_delay)
    return min(delay, max_delay) * (1 + random.random() * 0.1)


async def retry_remote(
    call: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
    operation: str = "remote call",
    rate_limit_max_delay: float = 35.0,
) -> T:
    """Run a remote call, retrying transient failures with backoff.

    Only errors whose ``is_transient`` is true (timeouts, transport errors,
    429 and 5xx answers) are retried. Anything else propagates at once.
    A 429 that announces when its window resets waits for that reset
    instead of the exponential delay.

    Args:
        call: Zero-argument coroutine factory performing the call.
        attempts: Maximum number of attempts (at least 1).
        base_delay: Delay before the second attempt, in seconds.
        max_delay: Upper bound for a single backoff delay, in seconds.
        operation: Label used in log events.
        rate_limit_max_delay: Upper bound for a rate-limit reset wait, in seconds.

    Returns:
        The call's result.

    Raises:
        RemoteClientError: The last transient failure, or any non-transient one.
    """
    attempts = max(1, attempts)
    delay = base_delay

    for attempt in range(1, attempts + 1):
        try:
            return await call()
        except RemoteClientError as e:
            if not e.is_transient or attempt == attempts:
                raise
            wait = _backoff(e, delay, max_delay, rate_limit_max_delay)
            logger.warning(
                "Retrying remote call",
                operation=operation,
                attempt=attempt,
                wait_seconds=round(wait, 2),
                error=e.message,
            )
            await asyncio.sleep(wait)
            delay *= 2

    raise AssertionError("unreachable")
