"""Rate-limit aware retry with exponential backoff, built on tenacity."""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, TypeVar

import aiohttp
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from reposcoop.domain.errors import (
    RateLimitError,
    ReleaseFetchError,
    RepositoryNotFoundError,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Longest rate-limit reset we are willing to wait for
MAX_RATE_LIMIT_WAIT = timedelta(minutes=15)
RATE_LIMIT_BUFFER_SECONDS = 1.0

RETRYABLE_EXCEPTIONS = (ReleaseFetchError, aiohttp.ClientError, asyncio.TimeoutError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_retryable(exc: BaseException) -> bool:
    """Missing repositories are final; other fetch and transport failures are retried."""
    if isinstance(exc, RepositoryNotFoundError):
        return False
    return isinstance(exc, RETRYABLE_EXCEPTIONS)


class wait_rate_limit_or_backoff(wait_base):
    """Wait until a near rate-limit reset, otherwise back off exponentially.

    Waiting for a rate-limit reset does not advance the backoff: the next
    generic failure still waits ``initial_delay * 2 ** previous_backoffs``.
    """

    def __init__(
        self,
        initial_delay: float,
        max_rate_limit_wait: timedelta = MAX_RATE_LIMIT_WAIT,
        clock: Callable[[], datetime] = _utcnow
    ):
        self._next_delay = initial_delay
        self._max_rate_limit_wait = max_rate_limit_wait
        self._clock = clock

    def __call__(self, retry_state) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitError):
            until_reset = exc.reset_at - self._clock()
            if timedelta(0) < until_reset <= self._max_rate_limit_wait:
                return until_reset.total_seconds() + RATE_LIMIT_BUFFER_SECONDS

        delay = self._next_delay
        self._next_delay *= 2
        return delay


class RetryPolicy:
    """Bounded retry for fetch operations.

    All waits go through an awaitable sleep, so cancelling the calling task
    cancels a pending wait as well.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_rate_limit_wait: timedelta = MAX_RATE_LIMIT_WAIT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow
    ):
        """Initialize retry policy.

        Args:
            max_attempts: Total number of invocations, including the first
            initial_delay: First backoff delay in seconds, doubled after each generic failure
            max_rate_limit_wait: Rate-limit resets further away than this are not waited for
            sleep: Awaitable sleep function
            clock: Returns the current aware datetime
        """
        self.max_attempts = max(1, max_attempts)
        self.initial_delay = initial_delay
        self._max_rate_limit_wait = max_rate_limit_wait
        self._sleep = sleep
        self._clock = clock

    async def _cancellable_sleep(
        self,
        seconds: float,
        cancel_event: Optional[asyncio.Event]
    ) -> None:
        if cancel_event is None:
            await self._sleep(seconds)
            return

        sleeper = asyncio.ensure_future(self._sleep(seconds))
        canceller = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait(
                {sleeper, canceller},
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            sleeper.cancel()
            canceller.cancel()
        if cancel_event.is_set():
            logger.info("Retry wait cancelled")
            raise asyncio.CancelledError()

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
        initial_delay: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> T:
        """Run ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Zero-argument coroutine function to invoke
            max_attempts: Overrides the policy's attempt limit for this call
            initial_delay: Overrides the policy's first backoff delay for this call
            cancel_event: When set, aborts a pending wait with CancelledError

        Returns:
            The operation's result

        Raises:
            The last failure, unchanged, once attempts are exhausted or the
            failure is not retryable
        """
        attempts = max(1, max_attempts) if max_attempts is not None else self.max_attempts
        delay = self.initial_delay if initial_delay is None else initial_delay

        async def sleep(seconds: float) -> None:
            await self._cancellable_sleep(seconds, cancel_event)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_rate_limit_or_backoff(delay, self._max_rate_limit_wait, self._clock),
            retry=retry_if_exception(is_retryable),
            sleep=sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )

        async for attempt in retrying:
            if cancel_event is not None and cancel_event.is_set():
                raise asyncio.CancelledError()
            with attempt:
                result = await operation()

        return result


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    cancel_event: Optional[asyncio.Event] = None
) -> T:
    """Retry ``operation`` with the default rate-limit aware policy."""
    policy = RetryPolicy(max_attempts=max_attempts, initial_delay=initial_delay)
    return await policy.call(operation, cancel_event=cancel_event)
