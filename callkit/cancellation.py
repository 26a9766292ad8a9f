"""
Cooperative cancellation handle shared by a call, its transport and its waits.
"""

import asyncio
from typing import Any, Awaitable, Optional

from .shared.errors import RequestCancelledError


class CancelToken:
    """Cancellation handle for one invocation.

    Cancelling is advisory for work already running (``race`` cancels it) and
    authoritative for observers: once cancelled, ``raise_if_cancelled`` turns
    any late result into a RequestCancelledError.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Request cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelledError(self.reason or "Request cancelled")

    async def race(self, awaitable: Awaitable[Any]) -> Any:
        """Await ``awaitable`` unless the token is cancelled first."""
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()

        if work in done:
            return work.result()
        raise RequestCancelledError(self.reason or "Request cancelled")

    def __repr__(self) -> str:
        state = f"cancelled={self.reason!r}" if self.cancelled else "active"
        return f"CancelToken({state})"
