"""
Reliability utilities.

Bounded retry for transitions that lost a race with a concurrent writer.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

from fleetflow.app.core.exceptions import ConflictRetryable
from fleetflow.app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def retry_on_conflict(
    func: Callable[[], Awaitable[T]],
    attempts: int = 3,
    backoff_seconds: float = 0.05
) -> T:
    """
    Run ``func`` and retry it while it raises ConflictRetryable.

    Every attempt calls ``func`` again so the transition reloads fresh state.
    Any other exception propagates immediately. After the last attempt the
    ConflictRetryable is re-raised to the caller.

    Args:
        func: Zero-argument coroutine factory performing one transition
        attempts: Total number of attempts (at least 1)
        backoff_seconds: Base delay, multiplied by the attempt number

    Returns:
        The result of the first successful attempt
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except ConflictRetryable:
            if attempt == attempts:
                logger.warning("Conflict persisted after %d attempts", attempts)
                raise
            logger.info("Conflict on attempt %d/%d, retrying", attempt, attempts)
            await asyncio.sleep(backoff_seconds * attempt)
