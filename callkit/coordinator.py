"""
Call coordinator: cache, single-flight dedup, retry with backoff.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from .adapters.identity import IdentityProvider
from .adapters.transport import Transport
from .caching.response_cache import ResponseCache, get_response_cache
from .cancellation import CancelToken
from .dedup.inflight_registry import InFlightRegistry, get_inflight_registry
from .models import (
    CallContext,
    CallDescriptor,
    CallPhase,
    CallResult,
    InvocationState,
    TransportRequest,
    TransportResponse,
)
from .shared.errors import (
    CallFailedError,
    FailureKind,
    RequestCancelledError,
    TransportError,
    classify_failure,
    extract_message,
    failure_from,
)
from .shared.logging import get_logger, bind_call_context, reset_call_context
from .shared.metrics import CallMetrics
from .shared.retry import BackoffPolicy


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()

_RETRY_MESSAGES = {
    FailureKind.RATE_LIMITED: "Rate limited. Retrying",
    FailureKind.SERVER_FAULT: "Server error. Retrying",
    FailureKind.NETWORK_FAULT: "Network error. Retrying",
}


class CallCoordinator:
    """Orchestrates one outbound call from cache lookup to terminal outcome.

    Phases: IDLE -> CHECKING_CACHE (reads only) -> CHECKING_REGISTRY (dedup
    only) -> EXECUTING(attempt) -> SUCCEEDED | FAILED | CANCELLED.

    Rate limits, server faults and network faults are retried with backoff
    until the descriptor's retry budget runs out; every other failure is
    terminal immediately. Only the final outcome is reported.
    """

    def __init__(self,
                 transport: Transport,
                 identity: Optional[IdentityProvider] = None,
                 cache: Optional[ResponseCache] = None,
                 registry: Optional[InFlightRegistry] = None,
                 backoff: Optional[BackoffPolicy] = None,
                 metrics: Optional[CallMetrics] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.transport = transport
        self.identity = identity
        self.cache = cache if cache is not None else get_response_cache()
        self.registry = registry if registry is not None else get_inflight_registry()
        self.backoff = backoff or BackoffPolicy()
        self.metrics = metrics
        self._sleep = sleep
        self.logger = get_logger("callkit.coordinator")

    async def fetch(self,
                    descriptor: CallDescriptor,
                    *,
                    token: Optional[CancelToken] = None,
                    payload: Any = UNSET,
                    listener: Optional[Callable[[CallContext], None]] = None) -> CallResult:
        """Run the call and return its result.

        Raises RequestCancelledError when ``token`` is cancelled and a
        CallFailedError subclass on terminal failure.
        """
        if payload is not UNSET:
            descriptor = descriptor.with_payload(payload)

        call_id, context_tokens = bind_call_context(descriptor.key)
        ctx = CallContext(
            descriptor=descriptor,
            key=descriptor.key,
            token=token or CancelToken(),
            call_id=call_id,
            listener=listener
        )
        started = time.monotonic()

        try:
            result = await self._run(ctx)
        except (RequestCancelledError, asyncio.CancelledError):
            self._settle(ctx, CallPhase.CANCELLED, started)
            self.logger.debug("Call cancelled", key=ctx.key, reason=ctx.token.reason)
            raise
        except CallFailedError as exc:
            self._settle(ctx, CallPhase.FAILED, started)
            self.logger.info(
                "Call failed",
                key=ctx.key,
                code=exc.code,
                status_code=exc.status_code,
                attempts=exc.attempts,
                error=exc.message
            )
            raise
        except Exception:
            self._settle(ctx, CallPhase.FAILED, started)
            raise
        else:
            self._settle(ctx, CallPhase.SUCCEEDED, started)
            return result
        finally:
            reset_call_context(context_tokens)

    async def execute(self,
                      descriptor: CallDescriptor,
                      state: InvocationState,
                      *,
                      token: Optional[CancelToken] = None,
                      payload: Any = UNSET) -> Optional[Any]:
        """Run the call on behalf of a call site, driving ``state``.

        Returns the value, or None on failure or cancellation. A cancelled
        call never touches ``state``.
        """
        token = token or CancelToken()

        def observable() -> bool:
            return state.active and not token.cancelled

        def on_transition(ctx: CallContext) -> None:
            if not observable():
                return
            state.phase = ctx.phase
            if ctx.phase is CallPhase.EXECUTING and ctx.attempt == 0:
                state.is_pending = True
                state.error = None

        try:
            result = await self.fetch(descriptor, token=token, payload=payload, listener=on_transition)
        except RequestCancelledError:
            return None
        except CallFailedError as exc:
            if observable():
                state.status_code = exc.status_code
                state.error = exc.message
                state.is_pending = False
            return None
        except Exception as exc:
            self.logger.error("Call raised unexpected error", key=descriptor.key, error=str(exc), exc_info=True)
            if observable():
                state.status_code = None
                state.error = extract_message(exc)
                state.is_pending = False
            return None

        if not observable():
            return None

        state.value = result.value
        if result.status_code is not None:
            state.status_code = result.status_code
        state.is_pending = False
        return result.value

    async def _run(self, ctx: CallContext) -> CallResult:
        descriptor = ctx.descriptor

        if descriptor.is_read:
            self._transition(ctx, CallPhase.CHECKING_CACHE)
            cached = self.cache.get(ctx.key, ttl=descriptor.cache_ttl)
            if self.metrics:
                self.metrics.record_cache_lookup(cached is not None)
            if cached is not None:
                self.logger.debug("Cache hit", key=ctx.key)
                return CallResult(value=cached, source="cache")

        register = False
        if descriptor.dedupe_enabled:
            self._transition(ctx, CallPhase.CHECKING_REGISTRY)
            if self.registry.has(ctx.key):
                joined = await self._join(ctx)
                if joined is not None:
                    return joined
            # A joiner that fell through may find a newer owner registered
            register = not self.registry.has(ctx.key)

        return await self._execute_network(ctx, register)

    async def _join(self, ctx: CallContext) -> Optional[CallResult]:
        """Wait on the in-flight call for this key; None means fall through."""
        if self.metrics:
            self.metrics.record_join()
        self.logger.debug("Joining in-flight call", key=ctx.key)

        try:
            value = await ctx.token.race(self.registry.join(ctx.key))
        except RequestCancelledError:
            if ctx.token.cancelled:
                raise
            self.logger.info("Joined call was cancelled, issuing own call", key=ctx.key)
            return None
        except Exception as exc:
            self.logger.info("Joined call failed, issuing own call", key=ctx.key, error=str(exc))
            return None

        ctx.token.raise_if_cancelled()
        return CallResult(value=value, source="inflight")

    async def _execute_network(self, ctx: CallContext, register: bool) -> CallResult:
        descriptor = ctx.descriptor
        request = self._build_request(descriptor)
        ctx.token.raise_if_cancelled()

        outcome: Optional["asyncio.Future[Any]"] = None
        if register:
            outcome = asyncio.get_running_loop().create_future()
            self.registry.register(ctx.key, outcome)

        try:
            response = await self._attempt_with_retry(ctx, request)
            if descriptor.is_read:
                self.cache.set(ctx.key, response.body)
            else:
                self._invalidate(ctx)
            if outcome is not None:
                outcome.set_result(response.body)
            return CallResult(value=response.body, status_code=response.status, source="network")
        except (Exception, asyncio.CancelledError) as exc:
            if outcome is not None and not outcome.done():
                shared = exc if isinstance(exc, Exception) else RequestCancelledError("Call cancelled")
                outcome.set_exception(shared)
                # Joiners are optional; nobody may ever retrieve this
                outcome.exception()
            raise
        finally:
            if register:
                self.registry.clear(ctx.key)

    async def _attempt_with_retry(self, ctx: CallContext, request: TransportRequest) -> TransportResponse:
        descriptor = ctx.descriptor
        attempt = 0

        while True:
            ctx.attempt = attempt
            self._transition(ctx, CallPhase.EXECUTING)
            if self.metrics:
                self.metrics.record_attempt(descriptor.method.value)

            try:
                response = await self.transport.send(request, ctx.token)
                # A late answer to a withdrawn call is discarded
                ctx.token.raise_if_cancelled()
            except RequestCancelledError:
                raise
            except TransportError as exc:
                ctx.token.raise_if_cancelled()
                kind = classify_failure(exc)

                if kind.retryable and attempt < descriptor.retries:
                    delay = self.backoff.next_delay(kind, attempt, exc.headers)
                    self.logger.warning(
                        _RETRY_MESSAGES[kind],
                        key=ctx.key,
                        attempt=attempt + 1,
                        max_attempts=descriptor.retries + 1,
                        delay=delay,
                        status_code=exc.status_code
                    )
                    if self.metrics:
                        self.metrics.record_retry(kind.value)
                    await ctx.token.race(self._sleep(delay))
                    attempt += 1
                    continue

                if kind.retryable:
                    self.logger.error(
                        "All retry attempts exhausted",
                        key=ctx.key,
                        attempts=attempt + 1,
                        status_code=exc.status_code,
                        error=str(exc)
                    )
                failure = failure_from(kind, exc, attempts=attempt + 1)
                if failure.status_code == 401 and not descriptor.skip_auth and self.identity is not None:
                    self.identity.handle_unauthorized()
                raise failure from exc

            if attempt > 0:
                self.logger.info("Retry succeeded", key=ctx.key, attempt=attempt + 1)
            return response

    def _build_request(self, descriptor: CallDescriptor) -> TransportRequest:
        headers: Dict[str, str] = {}
        if not descriptor.skip_auth and self.identity is not None:
            token = self.identity.get_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        return TransportRequest(
            url=descriptor.url,
            method=descriptor.method,
            payload=descriptor.payload,
            params=descriptor.params,
            headers=headers
        )

    def _invalidate(self, ctx: CallContext) -> None:
        """Drop the cache keys a successful write declared stale."""
        invalidated = [key for key in ctx.descriptor.invalidate_keys if self.cache.delete(key)]
        if invalidated:
            self.logger.debug("Invalidated cache keys", key=ctx.key, invalidated=invalidated)

    def _transition(self, ctx: CallContext, phase: CallPhase) -> None:
        ctx.phase = phase
        ctx.history.append(phase)
        if ctx.listener is not None:
            ctx.listener(ctx)

    def _settle(self, ctx: CallContext, phase: CallPhase, started: float) -> None:
        self._transition(ctx, phase)
        if self.metrics:
            self.metrics.record_outcome(phase.value, ctx.descriptor.method.value, time.monotonic() - started)
