"""Exponential backoff with jitter for coroutine factories."""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

OnRetry = Callable[[int, BaseException, float], Awaitable[None] | None]


def backoff_delay(
    attempt: int, base_delay: float, max_delay: float, jitter: float
) -> float:
    """Sleep before retry number ``attempt`` (1-based)."""
    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
    return delay + random.uniform(0, delay * jitter)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    retries: int = 5,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: float = 0.1,
    retry_on: Iterable[type[BaseException]] = (Exception,),
    on_retry: Optional[OnRetry] = None,
) -> T:
    """Await ``func()`` up to ``retries`` times.

    The last exception is re-raised unchanged once attempts run out, so
    callers translate it into their own error type.
    """
    if retries < 1:
        raise ValueError("retries must be >= 1")
    retry_on = tuple(retry_on)
    for attempt in range(1, retries + 1):
        try:
            return await func()
        except retry_on as exc:  # type: ignore[misc]
            if attempt == retries:
                raise
            sleep_for = backoff_delay(attempt, base_delay, max_delay, jitter)
            if on_retry:
                try:
                    result = on_retry(attempt, exc, sleep_for)
                    if result is not None:
                        await result  # support async callback
                except Exception:
                    logger.debug("retry_callback_failed", exc_info=True)
            await asyncio.sleep(sleep_for)
    raise RuntimeError("async retry exhausted")
