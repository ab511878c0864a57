"""Polling of long-running provider operations."""

from __future__ import annotations

import asyncio
import functools
import logging

from interfaces import GenerationClient
from models import RemoteOperation
from retry import RetryPolicy, Sleep

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 30.0
MAX_POLLS = 60


class OperationPoller:
    def __init__(
        self,
        client: GenerationClient,
        retry: RetryPolicy,
        interval_s: float = POLL_INTERVAL_S,
        max_polls: int = MAX_POLLS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._retry = retry
        self._interval_s = interval_s
        self._max_polls = max_polls
        self._sleep = sleep

    async def wait(self, operation: RemoteOperation) -> RemoteOperation:
        """Re-query ``operation`` until it is done or the poll budget runs out.

        The last observed state is returned either way; callers check ``done``
        and ``video_uri`` themselves.
        """
        current = operation
        polls = 0
        while not current.done and polls < self._max_polls:
            await self._sleep(self._interval_s)
            current = await self._retry.call(
                functools.partial(self._client.poll_operation, current)
            )
            polls += 1
            logger.debug(f"Polled {current.name} ({polls}/{self._max_polls}): done={current.done}")

        if not current.done:
            logger.warning(f"Operation {current.name} still running after {polls} polls")
        return current
