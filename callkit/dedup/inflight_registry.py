"""
Registry of in-flight calls for single-flight deduplication.
"""

import asyncio
from typing import Any, Awaitable, Dict

from ..shared.errors import InFlightConflictError
from ..shared.logging import get_logger


class InFlightRegistry:
    """Maps a cache key to the shared outcome of the call executing for it.

    At most one outcome is registered per key. Registration and removal are
    synchronous, so a ``has`` check followed by ``register`` with no await in
    between cannot interleave with another coroutine on the same loop.
    """

    def __init__(self):
        self._pending: Dict[str, "asyncio.Future[Any]"] = {}
        self.logger = get_logger("callkit.inflight_registry")

    def has(self, key: str) -> bool:
        return key in self._pending

    def register(self, key: str, outcome: "asyncio.Future[Any]") -> None:
        """Store the pending outcome for ``key``; callers must check ``has`` first."""
        if key in self._pending:
            raise InFlightConflictError(key)
        self._pending[key] = outcome
        self.logger.debug("Registered in-flight call", key=key)

    def join(self, key: str) -> Awaitable[Any]:
        """Await the outcome of the call in flight for ``key``.

        The outcome is shielded: cancelling one joiner never cancels the call
        it joined.
        """
        outcome = self._pending.get(key)
        if outcome is None:
            raise KeyError(key)
        return asyncio.shield(outcome)

    def clear(self, key: str) -> None:
        if self._pending.pop(key, None) is not None:
            self.logger.debug("Cleared in-flight call", key=key)

    def keys(self):
        return list(self._pending.keys())

    def __len__(self) -> int:
        return len(self._pending)


# Process-wide in-flight registry
inflight_registry = InFlightRegistry()


def get_inflight_registry() -> InFlightRegistry:
    """Get the process-wide in-flight registry."""
    return inflight_registry
