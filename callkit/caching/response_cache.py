"""
In-process TTL cache for read responses.
"""

import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Pattern, Union

from ..shared.logging import get_logger


DEFAULT_CACHE_TTL = 30.0


@dataclass
class CacheEntry:
    """Cached response value and the moment it was stored."""
    value: Any
    stored_at: float


class ResponseCache:
    """Mapping of cache key to (value, stored_at) with per-reader TTL.

    Expired entries are evicted when a reader looks them up; there is no
    background sweep. Every mutation is a single synchronous step, so the
    cache is safe to share between coroutines on one event loop.
    """

    def __init__(self, default_ttl: float = DEFAULT_CACHE_TTL, clock: Callable[[], float] = time.time):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self.logger = get_logger("callkit.response_cache")

    def get(self, key: str, ttl: Optional[float] = None) -> Optional[Any]:
        """Return the cached value if younger than ``ttl``, else evict and return None."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        threshold = self.default_ttl if ttl is None else ttl
        age = self._clock() - entry.stored_at
        if age < threshold:
            return entry.value

        del self._entries[key]
        self.logger.debug("Evicted expired cache entry", key=key, age=age, ttl=threshold)
        return None

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` with a fresh timestamp."""
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        self.logger.debug("Cleared response cache", entries=count)

    def delete_matching(self, pattern: Union[str, Pattern[str]]) -> int:
        """Delete every entry whose key matches ``pattern``; returns the count."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        matched = [key for key in self._entries if regex.search(key)]
        for key in matched:
            del self._entries[key]

        self.logger.debug("Cleared cache entries by pattern", pattern=regex.pattern, entries=len(matched))
        return len(matched)

    def keys(self):
        return list(self._entries.keys())

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# Process-wide response cache
response_cache = ResponseCache()


def get_response_cache() -> ResponseCache:
    """Get the process-wide response cache."""
    return response_cache


def clear_all_cache(cache: Optional[ResponseCache] = None) -> None:
    """Clear all cached responses."""
    (cache if cache is not None else response_cache).clear()


def clear_cache_by_pattern(pattern: Union[str, Pattern[str]], cache: Optional[ResponseCache] = None) -> int:
    """Clear cached responses whose key matches ``pattern``."""
    return (cache if cache is not None else response_cache).delete_matching(pattern)
