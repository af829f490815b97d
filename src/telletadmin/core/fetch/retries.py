"""
Retry utilities with tenacity.

Wraps a single-attempt coroutine with bounded, exponentially delayed
retries for transient failures (network errors and 5xx responses).
Client errors and server-side rate limiting (429) are surfaced at once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from telletadmin.core.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0  # seconds


class RetryPolicy:
    """Bounded exponential-backoff retry around an injected attempt function.

    The n-th retry waits ``base_delay * 2 ** (n - 1)`` seconds, so with the
    defaults the delays are 1s, 2s, 4s.

    Usage:
        policy = RetryPolicy(retries=3, base_delay=1.0)
        body = await policy.call(transport.send, spec)
    """

    def __init__(
        self,
        retries: int = DEFAULT_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        retry_on: Callable[[BaseException], bool] = is_retryable,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize retry policy.

        Args:
            retries: Maximum number of retries after the first attempt
            base_delay: Delay before the first retry, in seconds
            retry_on: Predicate deciding whether an error is transient
            sleep: Coroutine used for backoff waits
        """
        if retries < 0:
            raise ValueError("retries must be >= 0")
        if base_delay < 0:
            raise ValueError("base_delay must be >= 0")

        self.retries = retries
        self.base_delay = base_delay
        self.retry_on = retry_on
        self._sleep = sleep

    def delay_for(self, retry_number: int) -> float:
        """Backoff before the given retry (1-based)."""
        return self.base_delay * (2 ** (retry_number - 1))

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2),
            retry=retry_if_exception(self.retry_on),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            sleep=self._sleep,
            reraise=True,
        )

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Execute ``fn`` with retry.

        Raises:
            The classified error of the last attempt, unchanged.
        """
        async for attempt in self._retrying():
            with attempt:
                return await fn(*args, **kwargs)
        raise RuntimeError("retry loop exited without a result")  # pragma: no cover
