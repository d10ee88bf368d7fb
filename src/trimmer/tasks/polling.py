"""
Polling waits for remote operations, e.g. a notarization request that is
processed asynchronously by a remote service.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from ..validation import WaitTimeoutError
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def poll_until(
    check: Callable[[], Awaitable[Optional[T]]],
    interval: float,
    max_wait: Optional[float] = None,
    cancellation: Optional[CancellationToken] = None,
    description: str = "condition",
    source: Optional[str] = None,
) -> T:
    """
    Repeatedly call `check` until it returns a value other than None.

    The first check happens immediately. When a maximum wait is given, the
    last check happens at the deadline.

    Args:
        check: Async function returning None while the condition is pending
        interval: Seconds to sleep between checks
        max_wait: Maximum seconds to wait, None to wait indefinitely
        cancellation: Token to abort the wait
        description: What is being waited for, used in messages
        source: Name of the waiting component, used in messages

    Returns:
        The first value returned by `check` that is not None

    Raises:
        WaitTimeoutError: If `max_wait` is exceeded
        OperationCancelledError: If cancellation is requested
    """
    started = time.monotonic()
    attempt = 0

    while True:
        if cancellation is not None:
            cancellation.throw_if_cancellation_requested(source)

        attempt += 1
        result = await check()
        if result is not None:
            return result

        waited = time.monotonic() - started
        delay = interval
        if max_wait is not None:
            remaining = max_wait - waited
            if remaining <= 0:
                raise WaitTimeoutError(
                    f"Timed out waiting for {description} after {waited:.1f}s",
                    waited=waited,
                    source=source,
                )
            delay = min(interval, remaining)

        logger.debug(f"Waiting {delay:.1f}s for {description} (attempt {attempt})")
        if cancellation is not None:
            await cancellation.sleep(delay)
        else:
            await asyncio.sleep(delay)
