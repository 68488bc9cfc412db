import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry(
        operation: Callable[[], Awaitable[T]],
        attempts: int,
        retry_if: Callable[[BaseException], bool],
        base_delay: float = 0.0,
        max_delay: float = 1.0,
) -> T:
    """
    Run ``operation`` until it succeeds or ``attempts`` calls have been made.

    Only exceptions accepted by ``retry_if`` are retried; anything else
    propagates immediately. The delay between attempts doubles from
    ``base_delay`` up to ``max_delay``. When every attempt fails, the last
    exception is re-raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1.")

    delay = base_delay
    for attempt in range(1, attempts + 1):
        try:
            return await operation()

        except Exception as e:
            if not retry_if(e) or attempt == attempts:
                raise

            logger.debug("attempt %d/%d failed with %s, retrying", attempt, attempts, e.__class__.__name__)

        if delay > 0:
            await asyncio.sleep(delay)
            delay = min(delay * 2, max_delay)

    raise AssertionError("unreachable")
