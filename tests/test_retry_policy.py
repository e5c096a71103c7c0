"""Tests for the rate-limit aware retry policy."""
import asyncio
from datetime import datetime, timedelta, timezone

import aiohttp
import pytest
from reposcoop.domain.errors import RateLimitError, RemoteAPIError, RepositoryNotFoundError
from reposcoop.infrastructure.retry_policy import RetryPolicy, is_retryable, retry_with_backoff


NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class RecordingSleep:
    """Sleep replacement that records requested delays without waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class ScriptedOperation:
    """Operation that raises or returns the scripted outcomes in order."""

    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        outcome = self._outcomes[min(self.calls, len(self._outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _policy(sleep, max_attempts=3, initial_delay=1.0):
    return RetryPolicy(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        sleep=sleep,
        clock=lambda: NOW
    )


def test_success_on_first_attempt():
    sleep = RecordingSleep()
    operation = ScriptedOperation("ok")

    assert asyncio.run(_policy(sleep).call(operation)) == "ok"
    assert operation.calls == 1
    assert sleep.delays == []


def test_rate_limit_waits_until_reset():
    """Test a near rate-limit reset is waited for, plus one second."""
    sleep = RecordingSleep()
    operation = ScriptedOperation(RateLimitError(NOW + timedelta(seconds=5)), "ok")

    result = asyncio.run(_policy(sleep).call(operation))

    assert result == "ok"
    assert operation.calls == 2
    assert sleep.delays == [6.0]


def test_rate_limit_wait_does_not_advance_backoff():
    sleep = RecordingSleep()
    operation = ScriptedOperation(
        RemoteAPIError(500),
        RateLimitError(NOW + timedelta(seconds=30)),
        RemoteAPIError(502),
        "ok"
    )

    result = asyncio.run(_policy(sleep, max_attempts=4).call(operation))

    assert result == "ok"
    assert sleep.delays == [1.0, 31.0, 2.0]


def test_backoff_doubles_after_each_failure():
    sleep = RecordingSleep()
    operation = ScriptedOperation(RemoteAPIError(500), RemoteAPIError(500), RemoteAPIError(500), "ok")

    asyncio.run(_policy(sleep, max_attempts=4, initial_delay=0.5).call(operation))

    assert sleep.delays == [0.5, 1.0, 2.0]


def test_exhaustion_raises_last_failure():
    """Test the final failure is re-raised unchanged after max attempts."""
    sleep = RecordingSleep()
    failures = [RemoteAPIError(500), RemoteAPIError(502), RemoteAPIError(503)]
    operation = ScriptedOperation(*failures)

    with pytest.raises(RemoteAPIError) as exc_info:
        asyncio.run(_policy(sleep, max_attempts=3).call(operation))

    assert exc_info.value is failures[-1]
    assert operation.calls == 3
    assert sleep.delays == [1.0, 2.0]


def test_not_found_is_never_retried():
    sleep = RecordingSleep()
    operation = ScriptedOperation(RepositoryNotFoundError("test", "missing"), "ok")

    with pytest.raises(RepositoryNotFoundError):
        asyncio.run(_policy(sleep, max_attempts=10).call(operation))

    assert operation.calls == 1
    assert sleep.delays == []


def test_distant_rate_limit_uses_backoff():
    sleep = RecordingSleep()
    operation = ScriptedOperation(RateLimitError(NOW + timedelta(minutes=30)), "ok")

    asyncio.run(_policy(sleep).call(operation))

    assert sleep.delays == [1.0]


def test_past_rate_limit_reset_uses_backoff():
    sleep = RecordingSleep()
    operation = ScriptedOperation(RateLimitError(NOW - timedelta(seconds=10)), "ok")

    asyncio.run(_policy(sleep).call(operation))

    assert sleep.delays == [1.0]


def test_rate_limit_exhaustion_surfaces_rate_limit_error():
    sleep = RecordingSleep()
    error = RateLimitError(NOW + timedelta(seconds=5))
    operation = ScriptedOperation(error)

    with pytest.raises(RateLimitError) as exc_info:
        asyncio.run(_policy(sleep, max_attempts=2).call(operation))

    assert exc_info.value is error
    assert "Resets at" in str(exc_info.value)
    assert operation.calls == 2


def test_transport_errors_are_retried():
    sleep = RecordingSleep()
    operation = ScriptedOperation(aiohttp.ClientConnectionError("reset"), asyncio.TimeoutError(), "ok")

    assert asyncio.run(_policy(sleep).call(operation)) == "ok"
    assert operation.calls == 3


def test_unrelated_errors_propagate_immediately():
    sleep = RecordingSleep()
    operation = ScriptedOperation(KeyError("boom"), "ok")

    with pytest.raises(KeyError):
        asyncio.run(_policy(sleep).call(operation))

    assert operation.calls == 1


def test_per_call_overrides():
    sleep = RecordingSleep()
    operation = ScriptedOperation(RemoteAPIError(500))

    with pytest.raises(RemoteAPIError):
        asyncio.run(_policy(sleep).call(operation, max_attempts=5, initial_delay=0.25))

    assert operation.calls == 5
    assert sleep.delays == [0.25, 0.5, 1.0, 2.0]


def test_is_retryable():
    assert is_retryable(RemoteAPIError(500))
    assert is_retryable(RateLimitError(NOW))
    assert not is_retryable(RepositoryNotFoundError("a", "b"))
    assert not is_retryable(ValueError("x"))


def test_cancel_event_aborts_pending_wait():
    """Test setting the cancel signal interrupts a long backoff wait."""
    operation = ScriptedOperation(RemoteAPIError(500), "ok")
    policy = RetryPolicy(max_attempts=3, initial_delay=60.0)

    async def run():
        cancel_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel_event.set)
        with pytest.raises(asyncio.CancelledError):
            await policy.call(operation, cancel_event=cancel_event)

    asyncio.run(run())
    assert operation.calls == 1


def test_cancelling_task_cancels_pending_wait():
    operation = ScriptedOperation(RemoteAPIError(500), "ok")
    policy = RetryPolicy(max_attempts=3, initial_delay=60.0)

    async def run():
        task = asyncio.ensure_future(policy.call(operation))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())
    assert operation.calls == 1


def test_retry_with_backoff_helper():
    operation = ScriptedOperation(RepositoryNotFoundError("a", "b"))

    with pytest.raises(RepositoryNotFoundError):
        asyncio.run(retry_with_backoff(operation, max_attempts=3, initial_delay=0.01))

    assert operation.calls == 1
