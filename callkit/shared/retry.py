"""
Backoff policy for retrying rate-limited and failing calls.
"""

from typing import Mapping, Optional

from .errors import FailureKind


DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0


class BackoffPolicy:
    """Exponential backoff with an optional server supplied delay for rate limits."""

    def __init__(self,
                 base_delay: float = DEFAULT_BASE_DELAY,
                 max_delay: float = DEFAULT_MAX_DELAY,
                 exponential_base: float = 2.0):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry following a failed ``attempt`` (0-based)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return max(0.0, min(delay, self.max_delay))

    def retry_after(self, headers: Optional[Mapping[str, str]]) -> Optional[float]:
        """Server supplied delay in seconds, or None when absent or unusable."""
        if not headers:
            return None

        raw = None
        for name, value in headers.items():
            if name.lower() == "retry-after":
                raw = value
                break
        if raw is None:
            return None

        try:
            seconds = float(str(raw).strip())
        except ValueError:
            return None

        # Zero falls back to the computed backoff
        if seconds <= 0:
            return None
        return seconds

    def next_delay(self, kind: FailureKind, attempt: int,
                   headers: Optional[Mapping[str, str]] = None) -> float:
        """Pick the wait before the next attempt for a retryable failure."""
        if kind is FailureKind.RATE_LIMITED:
            server_delay = self.retry_after(headers)
            if server_delay is not None:
                return server_delay
        return self.delay_for(attempt)

    def __repr__(self) -> str:
        return (f"BackoffPolicy(base_delay={self.base_delay}, max_delay={self.max_delay}, "
                f"exponential_base={self.exponential_base})")
