"""Retry with backoff for provider calls.

Quota errors (429) wait progressively longer because the per-minute/per-day
windows take a while to reset; 5xx errors retry after the plain delay. The
delay carried into the next attempt compounds by 1.5 either way.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from errors import QUOTA_EXCEEDED, RETRYABLE, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]

DEFAULT_RETRIES = 3
DEFAULT_INITIAL_DELAY = 10.0
BACKOFF_MULTIPLIER = 1.5


def backoff_delay(kind: str, delay: float, attempt: int) -> float:
    if kind == QUOTA_EXCEEDED:
        return delay * attempt
    return delay


class RetryPolicy:
    """Stateless retry wrapper; safe to share between concurrent calls."""

    def __init__(
        self,
        retries: int = DEFAULT_RETRIES,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.retries = retries
        self.initial_delay = initial_delay
        self._sleep = sleep

    async def call(
        self,
        fn: Callable[[], Awaitable[T]],
        retries: Optional[int] = None,
        initial_delay: Optional[float] = None,
    ) -> T:
        budget = self.retries if retries is None else retries
        remaining = budget
        delay = self.initial_delay if initial_delay is None else initial_delay

        while True:
            try:
                return await fn()
            except Exception as exc:
                kind = classify_error(exc)
                if kind not in RETRYABLE or remaining <= 0:
                    raise
                wait = backoff_delay(kind, delay, budget - remaining + 1)
                logger.warning(
                    f"Retrying in {wait:.1f}s after {kind} ({exc}); "
                    f"{remaining} attempt(s) left"
                )
                await self._sleep(wait)
                remaining -= 1
                delay = wait * BACKOFF_MULTIPLIER
