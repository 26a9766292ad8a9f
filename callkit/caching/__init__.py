"""
Response caching package.

Holds the process-wide response cache consulted before read calls. Entries
are short-lived and expire lazily; invalidation after writes is explicit.
"""

from .response_cache import (
    CacheEntry,
    ResponseCache,
    DEFAULT_CACHE_TTL,
    clear_all_cache,
    clear_cache_by_pattern,
    get_response_cache,
)

__all__ = [
    "CacheEntry",
    "ResponseCache",
    "DEFAULT_CACHE_TTL",
    "clear_all_cache",
    "clear_cache_by_pattern",
    "get_response_cache",
]
