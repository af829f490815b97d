"""
HTTP transport using httpx.

Executes exactly one attempt of a request and classifies the outcome:
- 2xx: parsed body
- connection, DNS or timeout failures: NetworkError
- 429: RateLimitError carrying Retry-After
- 401 / 403: AuthenticationError / AuthorizationError
- any other non-2xx, redirect loops, undecodable bodies: APIError

Retrying, rate limiting and concurrency are the caller's concern.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

import httpx

from telletadmin.core.config.models import ClientConfig
from telletadmin.core.errors import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    NetworkError,
    RateLimitError,
    TelletError,
)

from .base import Attempt, RequestSpec

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds.

    HTTP-date values are not supported and yield None.
    """
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


async def _log_request(request: httpx.Request) -> None:
    logger.debug(
        f"Request {request.method} {request.url}",
        extra={"method": request.method, "path": request.url.path},
    )


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    logger.debug(
        f"Response {response.status_code} for {request.method} {request.url}",
        extra={"method": request.method, "path": request.url.path, "status_code": response.status_code},
    )


class Transport:
    """Single-attempt HTTP transport bound to one base URL.

    Features:
    - Persistent connection pooling (one httpx.AsyncClient)
    - Bearer token injection
    - Per-attempt timeout
    - Outcome classification into the client error taxonomy
    - ``on_attempt`` hook receiving an :class:`Attempt` for every execution
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        on_attempt: Callable[[Attempt], None] | None = None,
    ):
        """Initialize transport.

        Args:
            config: Client configuration (base URL, timeout, user agent)
            transport: Optional httpx transport, e.g. a mock in tests
            on_attempt: Called once per attempt, success or failure
        """
        self.config = config
        self._transport = transport
        self._on_attempt = on_attempt
        self._auth_token: str | None = None
        self._client: httpx.AsyncClient | None = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
                headers={
                    "User-Agent": self.config.user_agent,
                    "Accept": "application/json",
                },
                transport=self._transport,
                event_hooks={"request": [_log_request], "response": [_log_response]},
            )
        return self._client

    def set_auth_token(self, token: str | None) -> None:
        self._auth_token = token

    @property
    def has_auth_token(self) -> bool:
        return bool(self._auth_token)

    def _auth_headers(self) -> dict[str, str]:
        if self._auth_token:
            return {"Authorization": f"Bearer {self._auth_token}"}
        return {}

    # -------------------------------------------------------------------------
    # Attempts
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _attempt(self, method: str, path: str) -> AsyncIterator[Attempt]:
        """Time one attempt, translate httpx failures, and report it."""
        attempt = Attempt(method=method, path=path)
        started = time.perf_counter()
        try:
            yield attempt
        except httpx.TransportError as e:
            error = self._network_error(e, path)
            attempt.error = str(error)
            raise error from e
        except httpx.RequestError as e:
            error = self._request_error(e, path)
            attempt.error = str(error)
            raise error from e
        except TelletError as e:
            attempt.error = str(e)
            raise
        finally:
            attempt.elapsed_ms = (time.perf_counter() - started) * 1000
            if self._on_attempt is not None:
                self._on_attempt(attempt)

    async def send(self, spec: RequestSpec) -> Any:
        """Execute one attempt of ``spec`` and return the parsed body."""
        client = self._ensure_client()
        async with self._attempt(spec.method, spec.path) as attempt:
            response = await client.request(
                spec.method,
                spec.path,
                params=spec.params or None,
                json=spec.json_data,
                headers={**self._auth_headers(), **spec.headers},
            )
            attempt.status_code = response.status_code
            self.raise_for_status(response)
            return self.parse_body(response)

    async def download(
        self,
        url: str,
        on_progress: Callable[[int], Any] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> bytes:
        """Stream ``url`` into memory in one attempt.

        ``on_progress`` receives the completed percentage after each chunk
        when the server declares a Content-Length.
        """
        client = self._ensure_client()
        async with self._attempt("GET", url) as attempt:
            async with client.stream("GET", url, headers=self._auth_headers()) as response:
                attempt.status_code = response.status_code
                if not response.is_success:
                    await response.aread()
                    self.raise_for_status(response)

                total = _content_length(response)
                buffer = bytearray()
                async for chunk in response.aiter_bytes(chunk_size):
                    buffer.extend(chunk)
                    if on_progress is not None and total:
                        percent = round(response.num_bytes_downloaded * 100 / total)
                        on_progress(min(100, percent))
                return bytes(buffer)

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def _network_error(self, error: httpx.TransportError, path: str) -> NetworkError:
        if isinstance(error, httpx.TimeoutException):
            message = f"Request timed out after {self.config.timeout:g}s"
        elif isinstance(error, httpx.ConnectError):
            message = f"Cannot connect to {self.config.base_url}"
        else:
            message = f"Network error: {error}"
        return NetworkError(message, url=path, cause=error)

    @staticmethod
    def _request_error(error: httpx.RequestError, path: str) -> APIError:
        """Non-transport request failures: redirect loops, undecodable bodies."""
        if isinstance(error, httpx.TooManyRedirects):
            message = f"Too many redirects for {path}"
        elif isinstance(error, httpx.DecodingError):
            message = f"Could not decode response for {path}: {error}"
        else:
            message = f"Request failed: {error}"
        return APIError(message, url=path)

    @staticmethod
    def parse_body(response: httpx.Response) -> Any:
        """Return JSON for JSON responses, text otherwise, None when empty."""
        if not response.content:
            return None
        content_type = (response.headers.get("Content-Type") or "").lower()
        if "json" in content_type:
            try:
                return response.json()
            except ValueError:
                return response.text
        return response.text

    @classmethod
    def raise_for_status(cls, response: httpx.Response) -> None:
        """Raise the classified error for a non-2xx response."""
        status = response.status_code
        if 200 <= status < 300:
            return

        url = str(response.request.url)

        if status == 429:
            raise RateLimitError(parse_retry_after(response.headers.get("Retry-After")), url=url)

        body = cls.parse_body(response)
        message = f"Request failed with status code {status}"
        if isinstance(body, dict) and body.get("message"):
            message = str(body["message"])

        if status == 401:
            raise AuthenticationError(message, response=body, url=url)
        if status == 403:
            raise AuthorizationError(message, response=body, url=url)
        raise APIError(message, status, body, url)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


def _content_length(response: httpx.Response) -> int | None:
    value = response.headers.get("Content-Length")
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None
