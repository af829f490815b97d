"""
Rate limiting and throttling utilities.

Provides a sliding-window request limiter and a bounded-concurrency
limiter. Both are owned by a single API client instance; nothing here is
shared across clients or processes.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Sliding-window rate limiter.

    Keeps the timestamps of requests admitted within the last
    ``per_seconds`` and blocks new requests while ``max_requests`` of them
    are still inside the window.

    Usage:
        limiter = RateLimiter(max_requests=100, per_seconds=60)
        await limiter.admit()
        await send_request()
    """

    def __init__(
        self,
        max_requests: int = 100,
        per_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize rate limiter.

        Args:
            max_requests: Requests allowed per window
            per_seconds: Window length in seconds
            clock: Monotonic time source
            sleep: Coroutine used to wait for the window to open
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if per_seconds <= 0:
            raise ValueError("per_seconds must be > 0")

        self.max_requests = max_requests
        self.per_seconds = per_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        """Drop timestamps that have left the window."""
        window_start = now - self.per_seconds
        while self._timestamps and self._timestamps[0] <= window_start:
            self._timestamps.popleft()

    async def admit(self) -> None:
        """Block until a request fits in the window, then record it.

        Waiters queue on the internal lock, so they are admitted in the
        order they arrived.
        """
        async with self._lock:
            while True:
                now = self._clock()
                self._prune(now)

                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(now)
                    return

                wait_time = self._timestamps[0] + self.per_seconds - now
                logger.debug(f"Rate limit reached, waiting {wait_time:.3f}s")
                await self._sleep(max(0.0, wait_time))

    def current_count(self) -> int:
        """Number of requests admitted within the current window."""
        self._prune(self._clock())
        return len(self._timestamps)

    def reset(self) -> None:
        self._timestamps.clear()

    def stats(self) -> dict[str, Any]:
        return {
            "max_requests": self.max_requests,
            "per_seconds": self.per_seconds,
            "requests_in_window": self.current_count(),
        }


class ConcurrencyLimiter:
    """Bounds the number of tasks running at once.

    Excess callers wait on an ``asyncio.Semaphore`` and are let in as
    running tasks finish. The permit is released on every exit path.

    Usage:
        limiter = ConcurrencyLimiter(max_concurrent=5)
        result = await limiter.run(fetch_page, url)

        async with limiter.slot():
            await stream_download()
    """

    def __init__(self, max_concurrent: int = 5):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")

        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._active = 0
        self._peak = 0

    @property
    def active(self) -> int:
        """Tasks currently holding a slot."""
        return self._active

    @property
    def peak(self) -> int:
        """Highest number of simultaneously held slots seen so far."""
        return self._peak

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        self._active += 1
        self._peak = max(self._peak, self._active)

    def release(self) -> None:
        self._active -= 1
        self._semaphore.release()

    def slot(self) -> "_SlotContext":
        """Async context manager holding one slot."""
        return _SlotContext(self)

    async def run(self, task: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``task`` once a slot is free."""
        async with self.slot():
            return await task(*args, **kwargs)

    def stats(self) -> dict[str, Any]:
        return {
            "max_concurrent": self.max_concurrent,
            "active": self._active,
            "peak": self._peak,
        }


class _SlotContext:
    """Async context manager for one concurrency slot."""

    def __init__(self, limiter: ConcurrencyLimiter):
        self.limiter = limiter

    async def __aenter__(self) -> None:
        await self.limiter.acquire()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.limiter.release()
