"""
Request deduplication package.

Tracks the outcome of calls currently in flight so concurrent identical
requests share one network call.
"""

from .inflight_registry import InFlightRegistry, get_inflight_registry

__all__ = ["InFlightRegistry", "get_inflight_registry"]
