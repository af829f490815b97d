"""
Tellet API client.

Composes the transport with a sliding-window rate limiter, a concurrency
limiter and a retry policy:

    caller -> ConcurrencyLimiter -> RetryPolicy -> (RateLimiter -> Transport)*

Every attempt, including retries, passes the rate limiter, so the window
bounds actual HTTP traffic rather than logical calls.

Example:
    >>> async with create_client(max_concurrent=5, retries=3) as api:
    ...     api.set_auth_token(token)
    ...     orgs = await api.get("/organizations")
    ...     async for project in api.paginate("/projects", page_size=50):
    ...         print(project["name"])
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Iterable, Mapping

import httpx

from telletadmin.core.config.models import ClientConfig
from telletadmin.core.fetch.retries import RetryPolicy
from telletadmin.core.fetch.throttling import ConcurrencyLimiter, RateLimiter

from .base import SUPPORTED_METHODS, Attempt, PageCursor, RequestSpec, Settlement
from .transport import DEFAULT_CHUNK_SIZE, Transport

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_CHUNK = 10


class APIClient:
    """Rate-limited, retrying, concurrency-bounded API client.

    Each instance owns its own limiter pair; nothing is shared between
    clients.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        """Initialize API client.

        Args:
            config: Client configuration (defaults apply when omitted)
            transport: Optional httpx transport, e.g. a mock in tests
            rate_limiter: Override the limiter built from ``config.rate_limit``
            retry_policy: Override the policy built from ``config.retries``
        """
        self.config = config or ClientConfig()
        self.rate_limiter = rate_limiter or RateLimiter(
            max_requests=self.config.rate_limit.max_requests,
            per_seconds=self.config.rate_limit.per_seconds,
        )
        self.concurrency = ConcurrencyLimiter(self.config.max_concurrent)
        self.retry_policy = retry_policy or RetryPolicy(
            retries=self.config.retries,
            base_delay=self.config.retry_delay,
        )
        self.transport = Transport(self.config, transport=transport, on_attempt=self._record_attempt)

        self._total_requests = 0
        self.last_attempt: Attempt | None = None

    # -------------------------------------------------------------------------
    # Lifecycle / auth
    # -------------------------------------------------------------------------

    def set_auth_token(self, token: str) -> None:
        """Set the bearer token sent with every subsequent request."""
        self.transport.set_auth_token(token)

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> "APIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _record_attempt(self, attempt: Attempt) -> None:
        self._total_requests += 1
        self.last_attempt = attempt
        if attempt.error:
            logger.debug(
                f"Attempt failed after {attempt.elapsed_ms:.0f}ms: {attempt.error}",
                extra={
                    "method": attempt.method,
                    "path": attempt.path,
                    "status_code": attempt.status_code,
                    "elapsed_ms": attempt.elapsed_ms,
                },
            )

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    async def _attempt(self, spec: RequestSpec) -> Any:
        await self.rate_limiter.admit()
        return await self.transport.send(spec)

    async def _execute(self, spec: RequestSpec) -> Any:
        if spec.method not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported method: {spec.method}")
        async with self.concurrency.slot():
            return await self.retry_policy.call(self._attempt, spec)

    async def get(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await self._execute(
            RequestSpec(path, "GET", params=dict(params or {}), headers=dict(headers or {}))
        )

    async def post(
        self,
        path: str,
        data: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await self._execute(
            RequestSpec(path, "POST", json_data=data, params=dict(params or {}), headers=dict(headers or {}))
        )

    async def put(
        self,
        path: str,
        data: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await self._execute(
            RequestSpec(path, "PUT", json_data=data, params=dict(params or {}), headers=dict(headers or {}))
        )

    async def delete(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await self._execute(
            RequestSpec(path, "DELETE", params=dict(params or {}), headers=dict(headers or {}))
        )

    async def request(self, spec: RequestSpec | Mapping[str, Any]) -> Any:
        """Dispatch a request described by a spec or a plain mapping."""
        if not isinstance(spec, RequestSpec):
            spec = RequestSpec.from_mapping(spec)
        return await self._execute(spec)

    # -------------------------------------------------------------------------
    # Pagination
    # -------------------------------------------------------------------------

    async def paginate(
        self,
        path: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        params: Mapping[str, Any] | None = None,
        max_pages: int | None = None,
    ) -> AsyncIterator[Any]:
        """Yield items from an offset/limit listing, one page at a time.

        The next page is requested only after every item of the current
        page has been consumed. An empty page or one shorter than
        ``page_size`` ends the listing.
        """
        if page_size < 1:
            raise ValueError("page_size must be >= 1")

        cursor = PageCursor(page_size=page_size)
        pages = 0

        while max_pages is None or pages < max_pages:
            body = await self.get(path, params={**(params or {}), **cursor.params()})
            items = _page_items(body)
            pages += 1

            for item in items:
                yield item

            if cursor.is_last_page(len(items)):
                return
            cursor.advance()

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    async def batch(
        self,
        requests: Iterable[RequestSpec | Mapping[str, Any]],
        chunk_size: int = DEFAULT_CHUNK,
        on_progress: Callable[[int, int], Any] | None = None,
    ) -> list[Settlement]:
        """Run requests chunk by chunk, capturing each outcome.

        Requests within a chunk run concurrently (still subject to the
        limiters). A failing request never aborts the batch. Results are
        aligned index-for-index with ``requests``.
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        pending = list(requests)
        total = len(pending)
        results: list[Settlement] = []

        for start in range(0, total, chunk_size):
            chunk = pending[start:start + chunk_size]
            outcomes = await asyncio.gather(
                *(self.request(spec) for spec in chunk),
                return_exceptions=True,
            )
            results.extend(Settlement.of(outcome) for outcome in outcomes)

            if on_progress is not None:
                on_progress(len(results), total)

        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.debug(f"Batch finished with {failed}/{total} failed requests")
        return results

    # -------------------------------------------------------------------------
    # Download
    # -------------------------------------------------------------------------

    async def download(
        self,
        url: str,
        on_progress: Callable[[int], Any] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> bytes:
        """Download ``url`` holding one concurrency slot for the whole stream."""

        async def attempt() -> bytes:
            await self.rate_limiter.admit()
            return await self.transport.download(url, on_progress=on_progress, chunk_size=chunk_size)

        async with self.concurrency.slot():
            return await self.retry_policy.call(attempt)

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        """Request statistics."""
        return {
            "total_requests": self._total_requests,
            "current_window_requests": self.rate_limiter.current_count(),
            "rate_limit": {
                "max_requests": self.config.rate_limit.max_requests,
                "per_seconds": self.config.rate_limit.per_seconds,
            },
            "concurrency_limit": self.config.max_concurrent,
        }

    get_stats = stats


def _page_items(body: Any) -> list[Any]:
    """Extract the item list from a page body (bare list or ``{"data": [...]}``)."""
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        return list(body.get("data") or [])
    return []


def create_client(
    config: ClientConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    **overrides: Any,
) -> APIClient:
    """Create an API client.

    Keyword overrides are applied on top of ``config`` (or the defaults):

        create_client(base_url="https://staging.tellet.ai", retries=5)
    """
    base = config or ClientConfig()
    if overrides:
        base = ClientConfig.model_validate({**base.model_dump(), **overrides})
    return APIClient(base, transport=transport)
