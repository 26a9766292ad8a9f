"""
HTTP transport for callkit.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from ..cancellation import CancelToken
from ..models import TransportRequest, TransportResponse
from ..shared.errors import TransportError
from ..shared.logging import get_logger


class Transport(ABC):
    """Sends one request; raises TransportError on any failure."""

    @abstractmethod
    async def send(self, request: TransportRequest, cancel_token: CancelToken) -> TransportResponse:
        """Send ``request``, honouring ``cancel_token`` where possible."""

    async def aclose(self) -> None:
        return None


class HttpxTransport(Transport):
    """Transport backed by a shared ``httpx.AsyncClient``."""

    def __init__(self,
                 base_url: str = "",
                 timeout: float = 30.0,
                 client: Optional[httpx.AsyncClient] = None,
                 headers: Optional[Dict[str, str]] = None):
        self.base_url = base_url.rstrip('/')
        self.logger = get_logger("callkit.transport")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json", **(headers or {})}
        )

    async def send(self, request: TransportRequest, cancel_token: CancelToken) -> TransportResponse:
        return await cancel_token.race(self._send(request))

    async def _send(self, request: TransportRequest) -> TransportResponse:
        try:
            response = await self._client.request(
                request.method.value,
                request.url,
                json=request.payload,
                params=request.params,
                headers=request.headers
            )
        except httpx.HTTPError as exc:
            self.logger.debug("Transport error", url=request.url, method=request.method.value, error=str(exc))
            raise TransportError(
                str(exc) or "Network Error",
                details={"error_type": type(exc).__name__}
            ) from exc

        body = _decode_body(response)
        headers = {name.lower(): value for name, value in response.headers.items()}

        if response.is_success:
            return TransportResponse(status=response.status_code, body=body, headers=headers)

        raise TransportError(
            f"Request failed with status code {response.status_code}",
            status_code=response.status_code,
            headers=headers,
            body=body
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _decode_body(response: httpx.Response) -> Any:
    """JSON body when the response carries one, text otherwise."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
