"""
API data structures.

Request descriptions, per-attempt records, pagination cursors and batch
settlements shared by the transport and the client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")


@dataclass
class RequestSpec:
    """Description of one API request."""

    path: str
    method: str = "GET"
    json_data: Any = None
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.method = self.method.upper()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RequestSpec":
        """Build a spec from a plain mapping.

        Accepts ``url`` or ``path`` and ``data`` or ``json_data``.
        """
        path = data.get("path") or data.get("url")
        if not path:
            raise ValueError("request needs a 'path' or 'url'")
        return cls(
            path=path,
            method=data.get("method") or "GET",
            json_data=data.get("json_data", data.get("data")),
            params=dict(data.get("params") or {}),
            headers=dict(data.get("headers") or {}),
        )


@dataclass
class Attempt:
    """Record of one transport execution."""

    method: str
    path: str
    status_code: int | None = None
    error: str | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


@dataclass
class PageCursor:
    """Offset/limit position within a paginated listing."""

    page_size: int
    offset: int = 0

    def params(self) -> dict[str, int]:
        return {"limit": self.page_size, "offset": self.offset}

    def advance(self) -> None:
        self.offset += self.page_size

    def is_last_page(self, item_count: int) -> bool:
        """A short or empty page ends the listing."""
        return item_count == 0 or item_count < self.page_size


@dataclass
class Settlement:
    """Outcome of one request within a batch."""

    status: Literal["fulfilled", "rejected"]
    value: Any = None
    reason: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status == "fulfilled"

    @classmethod
    def of(cls, outcome: Any) -> "Settlement":
        if isinstance(outcome, BaseException):
            return cls(status="rejected", reason=outcome)
        return cls(status="fulfilled", value=outcome)
