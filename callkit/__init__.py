"""
callkit: resilient outbound calls for client applications.

Shields callers from duplicate concurrent requests, transient server errors,
rate limiting and stale data:

- caching: process-wide TTL response cache
- dedup: in-flight registry for single-flight requests
- coordinator: per-invocation state machine with retry and backoff
- call_site: per-caller state, supersede and retire semantics
- client: facade wiring settings, transport and identity
"""

from .call_site import CallSite
from .cancellation import CancelToken
from .caching.response_cache import ResponseCache, clear_all_cache, clear_cache_by_pattern
from .client import ApiClient, create_api_client
from .coordinator import CallCoordinator
from .dedup.inflight_registry import InFlightRegistry
from .models import CallDescriptor, CallPhase, CallResult, HttpMethod, InvocationState
from .shared.errors import (
    CallFailedError,
    ClientFaultError,
    NetworkFaultError,
    RateLimitError,
    RequestCancelledError,
    ServerFaultError,
    TransportError,
)

__all__ = [
    "ApiClient",
    "CallCoordinator",
    "CallDescriptor",
    "CallFailedError",
    "CallPhase",
    "CallResult",
    "CallSite",
    "CancelToken",
    "ClientFaultError",
    "HttpMethod",
    "InFlightRegistry",
    "InvocationState",
    "NetworkFaultError",
    "RateLimitError",
    "RequestCancelledError",
    "ResponseCache",
    "ServerFaultError",
    "TransportError",
    "clear_all_cache",
    "clear_cache_by_pattern",
    "create_api_client",
]
