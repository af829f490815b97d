"""Shared fixtures for Tellet Admin tests."""

import base64
import json
import time

import pytest

from telletadmin.core.config.models import ClientConfig, RateLimitWindow

BASE_URL = "https://api.tellet.test"


class FakeClock:
    """Manually advanced clock with a matching async sleep."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_jwt(exp: float | None) -> str:
    """Build an unsigned JWT carrying the given exp claim."""
    def segment(data: dict) -> str:
        raw = json.dumps(data).encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")

    payload = {"sub": "user-1"}
    if exp is not None:
        payload["exp"] = exp
    return f"{segment({'alg': 'HS256', 'typ': 'JWT'})}.{segment(payload)}.signature"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client_config():
    """Client config with no backoff delay and a generous rate limit."""
    return ClientConfig(
        base_url=BASE_URL,
        retries=2,
        retry_delay=0,
        max_concurrent=3,
        rate_limit=RateLimitWindow(max_requests=1000, per_seconds=60),
    )


@pytest.fixture
def valid_token():
    return make_jwt(time.time() + 3600)


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch, tmp_path):
    """Keep tests away from the user's real environment and home directory."""
    for name in ("TELLET_API_URL", "TELLET_EMAIL", "TELLET_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TELLET_CONFIG", str(tmp_path / "missing-config.yaml"))
