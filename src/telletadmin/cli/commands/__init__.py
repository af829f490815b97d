"""CLI command modules."""

from . import api, auth, cache, download

__all__ = [
    "api",
    "auth",
    "cache",
    "download",
]
