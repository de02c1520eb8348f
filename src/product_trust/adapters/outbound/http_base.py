"""
HTTP Source Adapter Base
========================

Base class for adapters that talk to an external collaborator over a
JSON HTTP API. Provides connection management, health checks and
consistent error translation.

Every transport or protocol failure surfaces as ``SourceUnavailableError``
so the domain services can turn it into an absent signal.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from product_trust.domain.errors import SourceUnavailableError

logger = logging.getLogger(__name__)


class HTTPSourceAdapter:
    """
    Base class for HTTP-based collaborators.

    Provides common functionality:
    - HTTP client management with connection pooling
    - Health checks via the /health endpoint
    - Translation of httpx errors into SourceUnavailableError

    An adapter with an empty base URL is treated as not configured: it
    never opens a client and every call fails as unavailable.
    """

    source_name: str = "http-source"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        connect_timeout: float = 2.0,
        max_connections: int = 20,
        max_keepalive: int = 10,
        api_token: str | None = None,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            base_url: Base URL of the collaborator (empty = not configured).
            timeout: Request timeout in seconds.
            connect_timeout: Connection timeout in seconds.
            max_connections: Maximum number of connections in pool.
            max_keepalive: Maximum keepalive connections.
            api_token: Optional bearer token.
        """
        self._base_url = base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive,
        )
        self._headers = {"Accept": "application/json"}
        if api_token:
            self._headers["Authorization"] = f"Bearer {api_token}"

    @property
    def is_configured(self) -> bool:
        return bool(self._base_url)

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Create the pooled HTTP client."""
        if not self.is_configured:
            logger.warning(f"{self.source_name} not configured; calls will report unavailable")
            return
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            limits=self._limits,
            headers=self._headers,
        )
        logger.info(f"{self.source_name} client ready for {self._base_url}")

    async def disconnect(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info(f"Disconnected from {self.source_name}")

    async def health_check(self) -> bool:
        """Check if the collaborator is healthy and responding."""
        if not self._client:
            return False
        try:
            response = await self._client.get(f"{self._base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def _get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def _post(self, path: str, payload: Any, *, not_found_ok: bool = True) -> Any:
        return await self._request("POST", path, json=payload, not_found_ok=not_found_ok)

    async def _request(
        self, method: str, path: str, *, not_found_ok: bool = True, **kwargs: Any
    ) -> Any:
        """
        Perform a request and decode the JSON body.

        Returns:
            The decoded body, or None for an empty body or (with
            ``not_found_ok``) a 404 response.

        Raises:
            SourceUnavailableError: On transport errors, timeouts, other
                non-2xx responses, or undecodable bodies.
        """
        if not self._client:
            reason = "not configured" if not self.is_configured else "not connected"
            raise SourceUnavailableError(self.source_name, reason)

        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
            if response.status_code == 404 and not_found_ok:
                return None
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()
        except httpx.TimeoutException:
            raise SourceUnavailableError(self.source_name, f"timeout calling {path}") from None
        except httpx.HTTPStatusError as e:
            raise SourceUnavailableError(
                self.source_name, f"HTTP {e.response.status_code} from {path}"
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailableError(self.source_name, f"request failed: {e}") from e
        except ValueError as e:
            raise SourceUnavailableError(self.source_name, f"invalid JSON from {path}") from e

    def _malformed(self, detail: str) -> SourceUnavailableError:
        logger.warning(f"{self.source_name} returned a malformed response: {detail}")
        return SourceUnavailableError(self.source_name, f"malformed response: {detail}")
