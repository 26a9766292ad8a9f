"""
Call sites: per-caller bindings around the coordinator.
"""

import asyncio
from typing import Any, Optional

from .cancellation import CancelToken
from .coordinator import CallCoordinator, UNSET
from .models import CallDescriptor, InvocationState
from .shared.logging import get_logger


class CallSite:
    """One logical caller owning an InvocationState.

    A new ``execute`` supersedes (cancels) any invocation still outstanding
    from this call site; ``retire`` cancels the outstanding invocation and
    ignores whatever it resolves to afterwards.
    """

    def __init__(self, coordinator: CallCoordinator, descriptor: CallDescriptor):
        self.coordinator = coordinator
        self.descriptor = descriptor
        self.state = InvocationState()
        self.logger = get_logger("callkit.call_site")

        self._token: Optional[CancelToken] = None
        self._mount_task: Optional["asyncio.Task[Any]"] = None
        self._retired = False

    @property
    def value(self) -> Any:
        return self.state.value

    @property
    def is_pending(self) -> bool:
        return self.state.is_pending

    @property
    def error(self) -> Optional[str]:
        return self.state.error

    @property
    def status_code(self) -> Optional[int]:
        return self.state.status_code

    @property
    def active(self) -> bool:
        return self.state.active

    @property
    def key(self) -> str:
        return self.descriptor.key

    async def execute(self, payload: Any = UNSET) -> Optional[Any]:
        """Issue the call; returns the value or None on failure/cancellation."""
        if self._retired:
            self.logger.warning("Execute called on retired call site", key=self.key)
            return None

        if self._token is not None:
            self._token.cancel("New request initiated")
        token = self._token = CancelToken()

        try:
            return await self.coordinator.execute(self.descriptor, self.state, token=token, payload=payload)
        finally:
            if self._token is token:
                self._token = None

    async def refetch(self, payload: Any = UNSET) -> Optional[Any]:
        """Drop this call site's cache entry and execute again."""
        self.clear_cache()
        return await self.execute(payload)

    def reset(self) -> None:
        self.state.reset()

    def clear_cache(self) -> None:
        self.coordinator.cache.delete(self.key)

    def mount(self) -> Optional["asyncio.Task[Any]"]:
        """Start the call right away when the descriptor asks for it (reads only)."""
        if self._retired or not (self.descriptor.immediate and self.descriptor.is_read):
            return None
        self._mount_task = asyncio.ensure_future(self.execute())
        return self._mount_task

    def retire(self) -> None:
        """Cancel any outstanding invocation and stop observing results."""
        if self._retired:
            return
        self._retired = True
        self.state.active = False
        if self._token is not None:
            self._token.cancel("Call site retired")
            self._token = None
        self.logger.debug("Call site retired", key=self.key)

    async def __aenter__(self) -> "CallSite":
        self.mount()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        # Late results of the mount task are discarded once retired
        self.retire()

    def __repr__(self) -> str:
        return f"CallSite(key={self.key!r}, active={self.active}, pending={self.is_pending})"
