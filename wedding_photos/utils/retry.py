"""
Retry with exponential backoff.

Only idempotent calls go through here (the OAuth token refresh). Media
library operations that create albums or media items are never retried,
since a retried create that actually succeeded upstream leaves a duplicate.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Iterator, Optional, Type, TypeVar

logger = logging.getLogger("wedding_photos.retry")

T = TypeVar("T")


def backoff_delays(
    retries: int,
    initial_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> Iterator[float]:
    """Yield the sleep before each retry, capped at max_delay, optionally scaled into 50%-100%."""
    for n in range(retries):
        delay = min(initial_delay * exponential_base ** n, max_delay)
        yield delay * random.uniform(0.5, 1.0) if jitter else delay


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: tuple[Type[Exception], ...] = (Exception,),
    target: Optional[str] = None,
    **kwargs,
) -> T:
    """
    Await `func(*args, **kwargs)`, retrying listed exceptions with backoff.

    `max_attempts` counts the first call. Anything not in
    `retryable_exceptions` propagates immediately; the last retryable error
    propagates once attempts run out.
    """
    delays = backoff_delays(max_attempts - 1, initial_delay, max_delay, exponential_base, jitter)
    attempt = 0
    while True:
        attempt += 1
        try:
            return await func(*args, **kwargs)
        except retryable_exceptions as e:
            log_extra = {
                "event": "retry",
                "attempt": attempt,
                "max_attempts": max_attempts,
                "error_type": type(e).__name__,
                "retry_target": target or getattr(func, "__name__", "call"),
            }
            delay = next(delays, None)
            if delay is None:
                logger.error("Retries exhausted", extra=log_extra)
                raise
            logger.warning(
                f"Attempt {attempt}/{max_attempts} failed, retrying in {delay:.2f}s",
                extra={**log_extra, "delay": round(delay, 3)},
            )
            await asyncio.sleep(delay)
