"""
Unit tests for the API client facade and configuration.
"""

from unittest.mock import patch

import httpx
import pytest

from callkit.adapters.identity import TokenStore
from callkit.adapters.transport import HttpxTransport
from callkit.caching.response_cache import ResponseCache
from callkit.client import ApiClient, create_api_client
from callkit.dedup.inflight_registry import InFlightRegistry
from callkit.shared.config import ClientSettings, get_config
from callkit.shared.errors import ClientFaultError

from conftest import FakeTransport, SleepRecorder, http_error


class TestClientSettings:
    """Test cases for ClientSettings."""

    def test_defaults(self, monkeypatch):
        """Defaults match the documented values."""
        for name in ("CALLKIT_BASE_URL", "CALLKIT_CACHE_TTL", "CALLKIT_RETRIES"):
            monkeypatch.delenv(name, raising=False)

        settings = get_config()

        assert settings.base_url == "http://localhost:5000/api"
        assert settings.request_timeout == 30.0
        assert settings.cache_ttl == 30.0
        assert settings.retries == 3
        assert settings.backoff_base_delay == 1.0
        assert settings.backoff_max_delay == 10.0

    def test_environment_overrides(self, monkeypatch):
        """CALLKIT_* variables override defaults."""
        monkeypatch.setenv("CALLKIT_CACHE_TTL", "5")
        monkeypatch.setenv("CALLKIT_RETRIES", "1")

        settings = ClientSettings()

        assert settings.cache_ttl == 5.0
        assert settings.retries == 1

    def test_explicit_overrides(self):
        """Keyword overrides win over the environment."""
        assert get_config(base_url="https://api.example.test").base_url == "https://api.example.test"


class TestApiClient:
    """Test cases for ApiClient."""

    @pytest.fixture
    def settings(self):
        """Settings with a short cache TTL and a small retry budget."""
        return ClientSettings(cache_ttl=12.0, retries=1)

    @pytest.fixture
    def build(self, settings):
        """Build an isolated client around a transport."""
        def _build(transport, **kwargs):
            return ApiClient(
                settings=settings,
                transport=transport,
                cache=ResponseCache(),
                registry=InFlightRegistry(),
                sleep=SleepRecorder(),
                **kwargs
            )
        return _build

    def test_descriptor_defaults_from_settings(self, build):
        """TTL and retry budget come from settings unless given."""
        client = build(FakeTransport())

        descriptor = client.descriptor("/hotels")
        custom = client.descriptor("/hotels", cache_ttl=1.0, retries=0)

        assert descriptor.cache_ttl == 12.0
        assert descriptor.retries == 1
        assert custom.cache_ttl == 1.0
        assert custom.retries == 0

    @pytest.mark.asyncio
    async def test_call_site_round_trip(self, build):
        """Call sites from the client share its cache."""
        transport = FakeTransport([{"id": "h1"}])
        client = build(transport)

        site = client.call_site("/hotels")
        await site.execute()

        assert site.value == [{"id": "h1"}]
        assert client.cache.get("GET:/hotels") == [{"id": "h1"}]

    @pytest.mark.asyncio
    async def test_request_raises_failures(self, build):
        """One-shot requests raise typed errors."""
        client = build(FakeTransport(http_error(422, {"message": "Invalid rating"})))

        with pytest.raises(ClientFaultError, match="Invalid rating"):
            await client.request("/reviews", method="POST", payload={"rating": 9})

    @pytest.mark.asyncio
    async def test_request_retries_with_budget(self, build):
        """The settings retry budget applies to one-shot requests."""
        transport = FakeTransport(http_error(503), {"ok": True})
        client = build(transport)

        assert await client.request("/stats") == {"ok": True}
        assert transport.calls == 2

    @pytest.mark.asyncio
    async def test_identity_token_sent(self, build):
        """The client's identity provides the bearer credential."""
        transport = FakeTransport({"ok": True})
        client = build(transport, identity=TokenStore("abc"))

        await client.request("/me")

        assert transport.requests[0].headers["Authorization"] == "Bearer abc"

    def test_cache_helpers(self, build):
        """Invalidate, pattern clear and full clear act on the client's cache."""
        client = build(FakeTransport())
        client.cache.set("GET:/hotels", 1)
        client.cache.set("GET:/hotels/h1", 2)
        client.cache.set("GET:/users", 3)
        client.cache.set("GET:/categories", 4)

        assert client.invalidate("GET:/users") is True
        assert client.clear_cache_by_pattern("hotels") == 2
        assert client.cache.keys() == ["GET:/categories"]

        client.clear_all_cache()
        assert len(client.cache) == 0

    @pytest.mark.asyncio
    async def test_end_to_end_with_httpx(self, settings):
        """The default httpx transport path retries a 503 and caches the read."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            if len(calls) == 1:
                return httpx.Response(503, json={"message": "Maintenance"})
            return httpx.Response(200, json={"hotels": 2})

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=settings.base_url)
        async with create_api_client(
            settings=settings,
            transport=HttpxTransport(client=http_client),
            cache=ResponseCache(),
            registry=InFlightRegistry(),
            sleep=SleepRecorder(),
            configure_logs=False
        ) as client:
            site = client.call_site("/stats/hotels")
            assert await site.execute() == {"hotels": 2}
            assert await site.execute() == {"hotels": 2}

        assert calls == ["/api/stats/hotels", "/api/stats/hotels"]
        assert site.status_code == 200
        await http_client.aclose()


class TestCreateApiClient:
    """Test cases for the create_api_client factory."""

    def test_logging_uses_configured_level(self, monkeypatch):
        """CALLKIT_LOG_LEVEL drives the structured logging setup."""
        monkeypatch.setenv("CALLKIT_LOG_LEVEL", "debug")

        with patch("callkit.client.configure_logging") as configure:
            client = create_api_client(transport=FakeTransport({}))

        configure.assert_called_once_with("callkit", "debug")
        assert client.settings.log_level == "debug"

    def test_logging_left_to_host(self):
        """configure_logs=False leaves logging untouched."""
        with patch("callkit.client.configure_logging") as configure:
            create_api_client(settings=ClientSettings(), transport=FakeTransport({}), configure_logs=False)

        configure.assert_not_called()
