"""
Shared metrics for callkit.
"""

from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram


class CallMetrics:
    """Centralized metrics collector for outbound calls."""

    def __init__(self, namespace: str = "callkit", registry: Optional[CollectorRegistry] = None):
        self.namespace = namespace
        # Each collector owns its registry unless one is shared explicitly
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up call metrics."""
        self._metrics["cache_lookups_total"] = Counter(
            "cache_lookups_total",
            "Total response cache lookups",
            ["result"],
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["transport_attempts_total"] = Counter(
            "transport_attempts_total",
            "Total transport invocations",
            ["method"],
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["call_retries_total"] = Counter(
            "call_retries_total",
            "Total retries scheduled",
            ["kind"],
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["dedup_joins_total"] = Counter(
            "dedup_joins_total",
            "Total calls joined onto an in-flight call",
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["call_outcomes_total"] = Counter(
            "call_outcomes_total",
            "Total terminal call outcomes",
            ["outcome"],
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["call_duration_seconds"] = Histogram(
            "call_duration_seconds",
            "Call duration in seconds, retries included",
            ["method"],
            namespace=self.namespace,
            registry=self.registry
        )

    def record_cache_lookup(self, hit: bool):
        self._metrics["cache_lookups_total"].labels(result="hit" if hit else "miss").inc()

    def record_attempt(self, method: str):
        self._metrics["transport_attempts_total"].labels(method=method).inc()

    def record_retry(self, kind: str):
        self._metrics["call_retries_total"].labels(kind=kind).inc()

    def record_join(self):
        self._metrics["dedup_joins_total"].inc()

    def record_outcome(self, outcome: str, method: str, duration: float):
        self._metrics["call_outcomes_total"].labels(outcome=outcome).inc()
        self._metrics["call_duration_seconds"].labels(method=method).observe(duration)

    def sample(self, name: str, **labels) -> float:
        """Read back a counter sample; 0.0 when the series was never touched."""
        value = self.registry.get_sample_value(f"{self.namespace}_{name}", labels or None)
        return value or 0.0
