"""Fetch utilities - throttling, retries, caching."""

from .caching import CacheEntry, CacheManager, build_caches, cached
from .retries import RetryPolicy
from .throttling import ConcurrencyLimiter, RateLimiter

__all__ = [
    "CacheEntry",
    "CacheManager",
    "ConcurrencyLimiter",
    "RateLimiter",
    "RetryPolicy",
    "build_caches",
    "cached",
]
