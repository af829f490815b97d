"""Tellet API client, transport and request data structures."""

from .base import Attempt, PageCursor, RequestSpec, Settlement
from .client import APIClient, create_client
from .transport import Transport, parse_retry_after

__all__ = [
    "APIClient",
    "Attempt",
    "PageCursor",
    "RequestSpec",
    "Settlement",
    "Transport",
    "create_client",
    "parse_retry_after",
]
