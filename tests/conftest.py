"""
Shared fixtures and fakes for callkit tests.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

import pytest

from callkit.adapters.identity import TokenStore
from callkit.adapters.transport import Transport
from callkit.caching.response_cache import ResponseCache
from callkit.cancellation import CancelToken
from callkit.coordinator import CallCoordinator
from callkit.dedup.inflight_registry import InFlightRegistry
from callkit.models import TransportRequest, TransportResponse
from callkit.shared.errors import TransportError
from callkit.shared.metrics import CallMetrics


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class SleepRecorder:
    """Records backoff delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


class FakeTransport(Transport):
    """Scripted transport.

    Outcomes are consumed in order and the last one repeats. An outcome may
    be a body, a TransportResponse or an exception to raise. ``gate`` holds
    every call until it is set; ``handler`` replaces the script entirely.
    """

    def __init__(self, *outcomes: Any,
                 gate: Optional[asyncio.Event] = None,
                 handler: Optional[Callable[[TransportRequest, CancelToken], Awaitable[Any]]] = None):
        self.outcomes = list(outcomes) or [{"ok": True}]
        self.gate = gate
        self.handler = handler
        self.requests: List[TransportRequest] = []
        self.tokens: List[CancelToken] = []
        self.entered = asyncio.Event()

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def send(self, request: TransportRequest, cancel_token: CancelToken) -> TransportResponse:
        self.requests.append(request)
        self.tokens.append(cancel_token)
        self.entered.set()

        if self.handler is not None:
            outcome = await self.handler(request, cancel_token)
        else:
            if self.gate is not None:
                await self.gate.wait()
            outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]

        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, TransportResponse):
            return outcome
        return TransportResponse(status=200, body=outcome)


def http_error(status: int, body: Any = None, headers: Optional[dict] = None) -> TransportError:
    """TransportError shaped like a non-2xx response."""
    return TransportError(
        f"Request failed with status code {status}",
        status_code=status,
        headers=headers,
        body=body
    )


@pytest.fixture
def clock():
    """Manually advanced clock."""
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Isolated response cache."""
    return ResponseCache(clock=clock)


@pytest.fixture
def registry():
    """Isolated in-flight registry."""
    return InFlightRegistry()


@pytest.fixture
def sleeps():
    """Backoff delay recorder."""
    return SleepRecorder()


@pytest.fixture
def metrics():
    """Metrics collector with its own registry."""
    return CallMetrics()


@pytest.fixture
def identity():
    """Token store holding a bearer credential."""
    return TokenStore("secret-token")


@pytest.fixture
def make_coordinator(cache, registry, sleeps, metrics, identity):
    """Build a coordinator around a given transport."""
    def _make(transport: Transport, **kwargs) -> CallCoordinator:
        options = dict(
            identity=identity,
            cache=cache,
            registry=registry,
            metrics=metrics,
            sleep=sleeps
        )
        options.update(kwargs)
        return CallCoordinator(transport, **options)

    return _make
