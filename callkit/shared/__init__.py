"""
Shared utilities for the callkit client layer.

This package aggregates common building blocks consumed by the rest of
callkit:

- config: Client configuration via pydantic-settings
- logging: Structured logging with call correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and failure classification
- retry: Backoff policy and Retry-After handling

Do not import from callkit.coordinator or callkit.call_site into shared/.
"""
