"""
API client facade wiring settings, transport, identity, cache and registry.
"""

from typing import Any, Optional, Pattern, Union

from .adapters.identity import IdentityProvider, TokenStore
from .adapters.transport import HttpxTransport, Transport
from .call_site import CallSite
from .caching.response_cache import ResponseCache, get_response_cache
from .coordinator import CallCoordinator, UNSET
from .dedup.inflight_registry import InFlightRegistry, get_inflight_registry
from .models import CallDescriptor, HttpMethod
from .shared.config import ClientSettings, get_config
from .shared.logging import configure_logging, get_logger
from .shared.metrics import CallMetrics
from .shared.retry import BackoffPolicy


class ApiClient:
    """Entry point handing out call sites bound to one coordinator."""

    def __init__(self,
                 settings: Optional[ClientSettings] = None,
                 transport: Optional[Transport] = None,
                 identity: Optional[IdentityProvider] = None,
                 cache: Optional[ResponseCache] = None,
                 registry: Optional[InFlightRegistry] = None,
                 metrics: Optional[CallMetrics] = None,
                 **coordinator_kwargs):
        self.settings = settings or get_config()
        self.logger = get_logger("callkit.client")
        self.identity = identity if identity is not None else TokenStore()
        self.metrics = metrics or CallMetrics()
        self.transport = transport or HttpxTransport(
            base_url=self.settings.base_url,
            timeout=self.settings.request_timeout
        )

        self.coordinator = CallCoordinator(
            transport=self.transport,
            identity=self.identity,
            cache=cache if cache is not None else get_response_cache(),
            registry=registry if registry is not None else get_inflight_registry(),
            backoff=BackoffPolicy(
                base_delay=self.settings.backoff_base_delay,
                max_delay=self.settings.backoff_max_delay
            ),
            metrics=self.metrics,
            **coordinator_kwargs
        )

    @property
    def cache(self) -> ResponseCache:
        return self.coordinator.cache

    @property
    def registry(self) -> InFlightRegistry:
        return self.coordinator.registry

    def descriptor(self, url: str, method: Union[HttpMethod, str] = HttpMethod.GET, **options) -> CallDescriptor:
        """Build a descriptor, filling TTL and retry budget from settings."""
        options.setdefault("cache_ttl", self.settings.cache_ttl)
        options.setdefault("retries", self.settings.retries)
        return CallDescriptor(url=url, method=method, **options)

    def call_site(self, url: str, method: Union[HttpMethod, str] = HttpMethod.GET, **options) -> CallSite:
        return CallSite(self.coordinator, self.descriptor(url, method, **options))

    async def request(self, url: str, method: Union[HttpMethod, str] = HttpMethod.GET,
                      payload: Any = UNSET, **options) -> Any:
        """One-shot call; raises CallFailedError subclasses on failure."""
        result = await self.coordinator.fetch(self.descriptor(url, method, **options), payload=payload)
        return result.value

    def invalidate(self, key: str) -> bool:
        return self.cache.delete(key)

    def clear_all_cache(self) -> None:
        self.cache.clear()

    def clear_cache_by_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        return self.cache.delete_matching(pattern)

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def create_api_client(settings: Optional[ClientSettings] = None,
                      configure_logs: bool = True,
                      **kwargs) -> ApiClient:
    """Create a configured API client.

    Unless ``configure_logs`` is False, structured logging is set up at the
    settings' log level. Hosts that own their logging pass False.
    """
    settings = settings or get_config()
    if configure_logs:
        configure_logging("callkit", settings.log_level)

    client = ApiClient(settings=settings, **kwargs)
    client.logger.info(
        "API client created",
        base_url=client.settings.base_url,
        env=client.settings.env
    )
    return client
