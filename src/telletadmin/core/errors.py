"""
Error taxonomy for the Tellet API layer.

Every error raised by the client derives from :class:`TelletError` and
carries a machine-readable ``code`` plus the process exit code the CLI
uses when the error reaches the command layer.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


class TelletError(Exception):
    """Base exception for all Tellet CLI errors."""

    code = "TELLET_ERROR"
    exit_code = 1

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for JSON logs."""
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp,
        }


class APIError(TelletError):
    """Non-2xx HTTP response from the API."""

    code = "API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: Any = None,
        url: str | None = None,
    ):
        super().__init__(message, {"status_code": status_code, "response": response})
        self.status_code = status_code
        self.response = response
        self.url = url


class AuthenticationError(APIError):
    """Credentials rejected (401)."""

    code = "AUTH_ERROR"
    exit_code = 3

    def __init__(self, message: str = "Authentication failed", response: Any = None, url: str | None = None):
        super().__init__(message, 401, response if response is not None else {"requires_auth": True}, url)


class AuthorizationError(APIError):
    """Access to the resource denied (403)."""

    code = "AUTHZ_ERROR"
    exit_code = 4

    def __init__(self, message: str = "Access denied", response: Any = None, url: str | None = None):
        super().__init__(message, 403, response if response is not None else {"requires_permission": True}, url)


class RateLimitError(APIError):
    """Server-side rate limit hit (429)."""

    code = "RATE_LIMIT_ERROR"
    exit_code = 8

    def __init__(self, retry_after: float | None = None, url: str | None = None):
        if retry_after is not None:
            message = f"Rate limit exceeded. Retry after {retry_after:g} seconds"
        else:
            message = "Rate limit exceeded"
        super().__init__(message, 429, {"retry_after": retry_after}, url)
        self.retry_after = retry_after


class NetworkError(TelletError):
    """Connection refused, unresolved host, or request timeout."""

    code = "NETWORK_ERROR"
    exit_code = 5

    def __init__(
        self,
        message: str = "Network error occurred",
        url: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, {"url": url})
        self.url = url
        self.cause = cause


def is_retryable(error: BaseException) -> bool:
    """Return True for transient failures: network errors and 5xx responses."""
    if isinstance(error, NetworkError):
        return True
    if isinstance(error, APIError) and not isinstance(error, RateLimitError):
        return error.status_code is not None and error.status_code >= 500
    return False


def exit_code_for(error: BaseException) -> int:
    """Map an error to the CLI process exit code."""
    if isinstance(error, TelletError):
        return error.exit_code
    return 1
