"""Tests for RetryPolicy."""

from __future__ import annotations

import asyncio

import pytest

from retry import RetryPolicy


class ApiError(Exception):
    def __init__(self, message: str = "", status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _failing(errors: list[Exception], result: str = "ok"):
    attempts: list[int] = []

    async def fn() -> str:
        attempts.append(1)
        if errors:
            raise errors.pop(0)
        return result

    return fn, attempts


def test_success_needs_no_retry() -> None:
    sleep = FakeSleep()
    fn, attempts = _failing([])

    result = asyncio.run(RetryPolicy(sleep=sleep).call(fn))

    assert result == "ok"
    assert len(attempts) == 1
    assert sleep.calls == []


def test_quota_backoff_grows_and_compounds() -> None:
    sleep = FakeSleep()
    fn, attempts = _failing([ApiError("quota", 429), ApiError("quota", 429), ApiError("quota", 429)])

    result = asyncio.run(RetryPolicy(sleep=sleep).call(fn))

    assert result == "ok"
    assert len(attempts) == 4
    # remaining=3 -> 10*1, remaining=2 -> 15*2, remaining=1 -> 45*3
    assert sleep.calls == pytest.approx([10.0, 30.0, 135.0])
    for prev, nxt in zip(sleep.calls, sleep.calls[1:]):
        assert nxt >= prev * 1.5


def test_server_error_uses_plain_delay() -> None:
    sleep = FakeSleep()
    fn, _ = _failing([ApiError("boom", 503), ApiError("boom", 500)])

    asyncio.run(RetryPolicy(sleep=sleep).call(fn))

    assert sleep.calls == pytest.approx([10.0, 15.0])


def test_exhaustion_reraises_original_error() -> None:
    sleep = FakeSleep()
    errors = [ApiError("RESOURCE_EXHAUSTED", 429) for _ in range(4)]
    last = errors[-1]
    fn, attempts = _failing(list(errors))

    with pytest.raises(ApiError) as excinfo:
        asyncio.run(RetryPolicy(sleep=sleep).call(fn))

    assert excinfo.value is last
    assert len(attempts) == 4
    assert len(sleep.calls) == 3


def test_non_retryable_error_raises_immediately() -> None:
    sleep = FakeSleep()
    fn, attempts = _failing([ApiError("INVALID_ARGUMENT: bad image", 400)])

    with pytest.raises(ApiError):
        asyncio.run(RetryPolicy(sleep=sleep).call(fn))

    assert len(attempts) == 1
    assert sleep.calls == []


def test_retry_logs_delay_and_remaining(caplog: pytest.LogCaptureFixture) -> None:
    fn, _ = _failing([ApiError("Too Many Requests")])

    with caplog.at_level("WARNING", logger="retry"):
        asyncio.run(RetryPolicy(sleep=FakeSleep()).call(fn))

    assert "10.0s" in caplog.text
    assert "3 attempt(s) left" in caplog.text


def test_custom_budget_and_delay() -> None:
    sleep = FakeSleep()
    fn, attempts = _failing([ApiError("x", 502), ApiError("x", 502)])

    with pytest.raises(ApiError):
        asyncio.run(RetryPolicy(sleep=sleep).call(fn, retries=1, initial_delay=2.0))

    assert len(attempts) == 2
    assert sleep.calls == [2.0]
