"""
Authentication and token caching.

Logs in against ``/users/login`` and keeps the resulting bearer token in a
small JSON file (mode 0600) so subsequent commands can reuse it until the
JWT's ``exp`` claim passes.
"""

from __future__ import annotations

import base64
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import orjson

from telletadmin.core.api.client import APIClient
from telletadmin.core.errors import AuthenticationError

logger = logging.getLogger(__name__)

LOGIN_PATH = "/users/login"


def token_expiry(token: str) -> datetime | None:
    """Read the ``exp`` claim of a JWT without verifying it."""
    try:
        payload_segment = token.split(".")[1]
        padded = payload_segment + "=" * (-len(payload_segment) % 4)
        payload = orjson.loads(base64.urlsafe_b64decode(padded))
        exp = payload.get("exp")
    except (IndexError, ValueError, AttributeError, orjson.JSONDecodeError):
        return None
    if exp is None:
        return None
    try:
        return datetime.fromtimestamp(float(exp), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


class AuthManager:
    """Obtains a bearer token for an :class:`APIClient` and caches it on disk."""

    def __init__(self, client: APIClient, token_path: Path | str):
        self.client = client
        self.token_path = Path(token_path).expanduser()

    @property
    def base_url(self) -> str:
        return self.client.config.base_url

    def load_token_cache(self) -> dict[str, Any] | None:
        """Return the cached token record, or None if missing or expired."""
        try:
            cache = orjson.loads(self.token_path.read_bytes())
        except FileNotFoundError:
            return None
        except (OSError, orjson.JSONDecodeError) as e:
            logger.debug(f"Ignoring unreadable token cache {self.token_path}: {e}")
            return None

        if not isinstance(cache, dict) or not cache.get("token"):
            return None

        expires_at = cache.get("expires_at")
        if expires_at:
            try:
                expired = datetime.fromisoformat(expires_at) <= datetime.now(timezone.utc)
            except (TypeError, ValueError):
                expired = True
            if expired:
                logger.debug("Cached token is expired")
                return None

        return cache

    def save_token_cache(self, token: str, email: str) -> None:
        """Persist ``token`` readable by the owner only. Failures are logged."""
        expires = token_expiry(token)
        cache = {
            "token": token,
            "email": email,
            "expires_at": expires.isoformat() if expires else None,
            "base_url": self.base_url,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.token_path.parent.mkdir(parents=True, exist_ok=True)
            self.token_path.write_bytes(orjson.dumps(cache, option=orjson.OPT_INDENT_2))
            os.chmod(self.token_path, 0o600)
            logger.debug("Token cached successfully")
        except OSError as e:
            logger.warning(f"Failed to cache token: {e}")

    def clear_token_cache(self) -> None:
        self.token_path.unlink(missing_ok=True)
        logger.debug("Token cache cleared")

    async def login(self, email: str, password: str) -> str:
        """Exchange credentials for a token and cache it.

        Raises:
            AuthenticationError: Credentials rejected or no token returned
        """
        logger.debug(f"Authenticating with {self.base_url}")
        try:
            body = await self.client.post(LOGIN_PATH, {"email": email, "password": password})
        except AuthenticationError as e:
            raise AuthenticationError("Invalid email or password", url=e.url) from e

        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            raise AuthenticationError("Invalid response from login endpoint")

        self.save_token_cache(token, email)
        return token

    def cached_token(self) -> str | None:
        """Token from the cache file if it belongs to this base URL."""
        cache = self.load_token_cache()
        if cache and cache.get("base_url") == self.base_url:
            return cache["token"]
        return None

    async def authenticate(
        self,
        email: str | None = None,
        password: str | None = None,
        use_cache: bool = True,
    ) -> str:
        """Attach a token to the client, reusing the cached one when allowed.

        Raises:
            AuthenticationError: No usable cached token and no credentials
        """
        token = self.cached_token() if use_cache else None
        if token:
            logger.debug("Using cached authentication token")
        else:
            if not email or not password:
                raise AuthenticationError("Email and password are required to log in")
            token = await self.login(email, password)

        self.client.set_auth_token(token)
        return token

    def logout(self) -> None:
        self.clear_token_cache()
