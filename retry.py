"""
Bounded retry with a fallback value.

Backend calls that must never fail the whole operation are wrapped here: the
attempt is made up to `max_attempts` times and, if every attempt raises, the
fallback is returned instead of the exception.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    max_attempts: int = 2
    delay: float = 0.0  # seconds between attempts
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,)


DEFAULT_POLICY = RetryPolicy()


async def with_fallback(
    attempt: Callable[[], Awaitable[T]],
    fallback: Callable[[], T],
    policy: RetryPolicy = DEFAULT_POLICY,
    label: str = "operation",
) -> T:
    for n in range(1, policy.max_attempts + 1):
        try:
            return await attempt()
        except policy.retryable_exceptions as e:
            if n < policy.max_attempts:
                logger.warning(f"{label} attempt {n}/{policy.max_attempts} failed, retrying: {e}")
                if policy.delay:
                    await asyncio.sleep(policy.delay)
            else:
                logger.error(f"{label} failed after {policy.max_attempts} attempts, using fallback: {e}")
    return fallback()
