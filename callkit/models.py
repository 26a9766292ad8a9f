"""
Call descriptors, invocation state and call lifecycle models.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

from .caching.response_cache import DEFAULT_CACHE_TTL
from .cancellation import CancelToken


DEFAULT_RETRIES = 3


class HttpMethod(str, Enum):
    """HTTP verbs supported by the coordinator."""
    GET = "GET"          # read
    POST = "POST"        # create
    PUT = "PUT"          # replace
    PATCH = "PATCH"      # update
    DELETE = "DELETE"    # delete

    @property
    def is_read(self) -> bool:
        return self is HttpMethod.GET


class CallPhase(Enum):
    """Lifecycle phases of one invocation."""
    IDLE = "idle"
    CHECKING_CACHE = "checking_cache"
    CHECKING_REGISTRY = "checking_registry"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (CallPhase.SUCCEEDED, CallPhase.FAILED, CallPhase.CANCELLED)


@dataclass(frozen=True)
class CallDescriptor:
    """Immutable description of one outbound call."""
    url: str
    method: HttpMethod = HttpMethod.GET
    payload: Any = None
    params: Optional[Mapping[str, Any]] = None
    cache_key: Optional[str] = None
    cache_ttl: float = DEFAULT_CACHE_TTL
    dedupe: Optional[bool] = None
    retries: int = DEFAULT_RETRIES
    skip_auth: bool = False
    immediate: bool = False
    invalidate_keys: Tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.method, HttpMethod):
            object.__setattr__(self, "method", HttpMethod(str(self.method).upper()))
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.cache_ttl < 0:
            raise ValueError("cache_ttl must be >= 0")
        if isinstance(self.invalidate_keys, str):
            object.__setattr__(self, "invalidate_keys", (self.invalidate_keys,))
        else:
            object.__setattr__(self, "invalidate_keys", tuple(self.invalidate_keys))

    @property
    def is_read(self) -> bool:
        return self.method.is_read

    @property
    def dedupe_enabled(self) -> bool:
        if self.dedupe is None:
            return self.is_read
        return self.dedupe

    @property
    def key(self) -> str:
        """Explicit cache key, or ``METHOD:url`` with a sorted query string."""
        if self.cache_key:
            return self.cache_key

        key = f"{self.method.value}:{self.url}"
        if self.params:
            key = f"{key}?{urlencode(sorted(self.params.items()), doseq=True)}"
        return key

    def with_payload(self, payload: Any) -> "CallDescriptor":
        return replace(self, payload=payload)


@dataclass
class TransportRequest:
    """What a transport is asked to send."""
    url: str
    method: HttpMethod
    payload: Any = None
    params: Optional[Mapping[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class TransportResponse:
    """A successful (2xx) transport response."""
    status: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class CallResult:
    """Value produced by a settled call and where it came from."""
    value: Any
    status_code: Optional[int] = None
    source: str = "network"


@dataclass
class CallContext:
    """Per-invocation bookkeeping for the coordinator."""
    descriptor: CallDescriptor
    key: str
    token: CancelToken
    call_id: str = ""
    phase: CallPhase = CallPhase.IDLE
    attempt: int = 0
    history: List[CallPhase] = field(default_factory=lambda: [CallPhase.IDLE])
    listener: Optional[Callable[["CallContext"], None]] = None


@dataclass
class InvocationState:
    """Observable state of one call site."""
    value: Any = None
    is_pending: bool = False
    error: Optional[str] = None
    status_code: Optional[int] = None
    phase: CallPhase = CallPhase.IDLE
    active: bool = True

    def reset(self) -> None:
        self.value = None
        self.is_pending = False
        self.error = None
        self.status_code = None
        self.phase = CallPhase.IDLE
