"""
Response caching with TTL, LRU eviction and an optional on-disk tier.

The in-memory tier holds at most ``max_size`` entries and evicts the least
recently accessed one first. When persistence is enabled every ``set`` is
also written to ``<cache_dir>/<key>.json`` as ``{"value", "expires"}``,
and a memory miss falls back to that file. Disk is a slower fallback,
not a synchronized mirror.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from functools import wraps
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

import orjson

if TYPE_CHECKING:
    from telletadmin.core.config.models import CacheSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL = 600.0  # seconds
DEFAULT_MAX_SIZE = 100


@dataclass
class CacheEntry:
    """In-memory cache entry."""

    key: str
    value: Any
    expires_at: float
    last_accessed_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class CacheManager:
    """Key/value cache with TTL, LRU eviction and optional persistence.

    Usage:
        cache = CacheManager(ttl=300, max_size=50, persistent=True, cache_dir=path)
        await cache.set("project-123", project)
        project = await cache.get("project-123")
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        max_size: int = DEFAULT_MAX_SIZE,
        persistent: bool = False,
        cache_dir: Path | str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize cache manager.

        Args:
            ttl: Default time-to-live in seconds
            max_size: Maximum entries held in memory
            persistent: Also store entries as JSON files
            cache_dir: Directory for persistent entries (required when persistent)
            clock: Wall-clock time source; persisted expiries are epoch seconds
        """
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if persistent and cache_dir is None:
            raise ValueError("cache_dir is required when persistent=True")

        self.ttl = ttl
        self.max_size = max_size
        self.persistent = persistent
        self.cache_dir = Path(cache_dir).expanduser() if cache_dir is not None else None
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

        if self.persistent:
            self._init_persistent()

    @staticmethod
    def generate_key(namespace: str, params: Any) -> str:
        """Derive a stable key from a namespace and parameters.

        Mapping keys are sorted before hashing, so structurally equal
        parameters give the same key regardless of insertion order.
        Integers wider than 64 bits cannot be encoded and raise TypeError.
        """
        payload = orjson.dumps(
            {"namespace": namespace, "params": params},
            option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
            default=str,
        )
        return hashlib.md5(payload).hexdigest()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any:
        """Return the live value for ``key`` or None."""
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None:
            if entry.is_expired(now):
                del self._entries[key]
            else:
                entry.last_accessed_at = now
                self._entries.move_to_end(key)
                return entry.value

        if self.persistent:
            record = self._read_persistent(key)
            if record is not None:
                value, expires_at = record
                self._store(key, value, expires_at)
                return value

        return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        skip_persistent: bool = False,
    ) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds (default TTL if None)."""
        expires_at = self._clock() + (self.ttl if ttl is None else ttl)
        self._store(key, value, expires_at)

        if self.persistent and not skip_persistent:
            self._write_persistent(key, value, expires_at)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)
        if self.persistent:
            self._delete_persistent(key)

    async def clear(self) -> None:
        self._entries.clear()
        if self.persistent:
            self._clear_persistent()

    def stats(self) -> dict[str, Any]:
        """Cache statistics for the in-memory tier."""
        now = self._clock()
        expired = sum(1 for entry in self._entries.values() if entry.is_expired(now))
        return {
            "size": len(self._entries),
            "valid_count": len(self._entries) - expired,
            "expired_count": expired,
            "max_size": self.max_size,
            "ttl": self.ttl,
            "persistent": self.persistent,
        }

    def __len__(self) -> int:
        return len(self._entries)

    # -------------------------------------------------------------------------
    # Memory tier
    # -------------------------------------------------------------------------

    def _store(self, key: str, value: Any, expires_at: float) -> None:
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            expires_at=expires_at,
            last_accessed_at=self._clock(),
        )
        self._entries.move_to_end(key)

        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted least recently used cache entry {evicted}")

    # -------------------------------------------------------------------------
    # Persistent tier
    # -------------------------------------------------------------------------

    def _init_persistent(self) -> None:
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.debug(f"Failed to create cache directory {self.cache_dir}: {e}")

    def _path_for(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def _read_persistent(self, key: str) -> tuple[Any, float] | None:
        path = self._path_for(key)
        try:
            record = orjson.loads(path.read_bytes())
            value = record["value"]
            expires_at = float(record["expires"])
        except FileNotFoundError:
            return None
        except (OSError, orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.debug(f"Ignoring unreadable cache record {path}: {e}")
            return None

        if self._clock() > expires_at:
            self._delete_persistent(key)
            return None

        return value, expires_at

    def _write_persistent(self, key: str, value: Any, expires_at: float) -> None:
        try:
            payload = orjson.dumps({"value": value, "expires": expires_at}, default=str)
            self._path_for(key).write_bytes(payload)
        except (OSError, TypeError) as e:
            logger.debug(f"Failed to write persistent cache for {key}: {e}")

    def _delete_persistent(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Failed to delete persistent cache for {key}: {e}")

    def _clear_persistent(self) -> None:
        try:
            for path in self.cache_dir.glob("*.json"):
                path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Failed to clear persistent cache: {e}")


def cached(
    fn: Callable[..., Awaitable[T]] | None = None,
    *,
    ttl: float | None = None,
    max_size: int = DEFAULT_MAX_SIZE,
    persistent: bool = False,
    cache_dir: Path | str | None = None,
    cache: CacheManager | None = None,
) -> Callable[..., Awaitable[T]]:
    """Memoize an async function on its arguments.

    Can be used with or without arguments:

        @cached
        async def fetch_org(org_id): ...

        fetch_project = cached(client.get, ttl=300)

    Errors raised by ``fn`` propagate and nothing is stored. A ``None``
    result is indistinguishable from a miss, so it is never served from
    the cache. Concurrent first calls with the same arguments are not
    coalesced; each one invokes ``fn``.

    The backing manager is available as ``wrapper.cache``.
    """
    if cache is None:
        cache = CacheManager(
            ttl=DEFAULT_TTL if ttl is None else ttl,
            max_size=max_size,
            persistent=persistent,
            cache_dir=cache_dir,
        )

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        namespace = getattr(func, "__qualname__", None) or getattr(func, "__name__", repr(func))

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            key = cache.generate_key(namespace, {"args": args, "kwargs": kwargs})

            value = await cache.get(key)
            if value is not None:
                logger.debug(f"Cache hit for {namespace}")
                return value

            logger.debug(f"Cache miss for {namespace}")
            result = await func(*args, **kwargs)
            await cache.set(key, result, ttl=ttl)
            return result

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper

    if fn is not None:
        return decorator(fn)
    return decorator


# Named caches: (ttl seconds, max size, persistent)
CACHE_PROFILES: dict[str, tuple[float, int, bool]] = {
    "organizations": (600.0, 50, True),
    "projects": (300.0, 100, True),
    "api": (120.0, 200, False),
}


def build_caches(settings: "CacheSettings") -> dict[str, CacheManager]:
    """Create the named caches, each persisting under its own subdirectory."""
    caches: dict[str, CacheManager] = {}
    for name, (ttl, max_size, persistent) in CACHE_PROFILES.items():
        caches[name] = CacheManager(
            ttl=ttl,
            max_size=max_size,
            persistent=persistent,
            cache_dir=settings.dir / name if persistent else None,
        )
    return caches
