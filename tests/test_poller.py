"""Tests for OperationPoller."""

from __future__ import annotations

import asyncio

from models import RemoteOperation
from poller import OperationPoller
from retry import RetryPolicy


class FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class CountingClient:
    """Reports done on the ``done_on``-th poll (never when None)."""

    def __init__(self, done_on: int | None, fail_first: Exception | None = None) -> None:
        self.done_on = done_on
        self.polls = 0
        self._fail_first = fail_first

    async def poll_operation(self, operation: RemoteOperation) -> RemoteOperation:
        if self._fail_first is not None:
            exc, self._fail_first = self._fail_first, None
            raise exc
        self.polls += 1
        done = self.done_on is not None and self.polls >= self.done_on
        return RemoteOperation(name=operation.name, done=done, video_uri="uri" if done else None)


class QuotaError(Exception):
    status = 429


def _poller(client: CountingClient, sleep: FakeSleep) -> OperationPoller:
    return OperationPoller(client, RetryPolicy(sleep=sleep), sleep=sleep)


def test_polls_until_done() -> None:
    sleep = FakeSleep()
    client = CountingClient(done_on=4)

    result = asyncio.run(_poller(client, sleep).wait(RemoteOperation(name="op-1")))

    assert result.done is True
    assert client.polls == 4
    assert sleep.calls == [30.0] * 4


def test_already_done_operation_is_not_polled() -> None:
    sleep = FakeSleep()
    client = CountingClient(done_on=1)
    op = RemoteOperation(name="op-1", done=True)

    result = asyncio.run(_poller(client, sleep).wait(op))

    assert result is op
    assert client.polls == 0
    assert sleep.calls == []


def test_gives_up_after_sixty_polls_without_raising() -> None:
    sleep = FakeSleep()
    client = CountingClient(done_on=None)

    result = asyncio.run(_poller(client, sleep).wait(RemoteOperation(name="op-1")))

    assert result.done is False
    assert client.polls == 60
    assert len(sleep.calls) == 60


def test_poll_goes_through_retry_policy() -> None:
    sleep = FakeSleep()
    client = CountingClient(done_on=1, fail_first=QuotaError("quota"))

    result = asyncio.run(_poller(client, sleep).wait(RemoteOperation(name="op-1")))

    assert result.done is True
    assert client.polls == 1
    # one poll interval, one quota backoff
    assert sleep.calls == [30.0, 10.0]
