"""Thin async HTTP adapter for the Vault ``/v1`` API.

The adapter attaches the session token, issues the request and classifies
non-2xx responses. It holds no business logic and performs no retries.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Self

import httpx

from custody.errors import CustodyError, ErrorKind, classify_status

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-Vault-Token"
API_VERSION = "v1"


class VaultTransport:
    """Issues GET/POST/LIST calls against ``{base_url}/v1/...``.

    Pass ``client`` to share a connection pool or to substitute a mock
    transport in tests; an injected client is left open on ``aclose``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def base_url(self) -> str:
        return self._base_url

    def url_for(self, path: str) -> str:
        return f"{self._base_url}/{API_VERSION}/{path.strip('/')}"

    async def get(self, path: str, token: str) -> dict[str, Any]:
        return await self.request("GET", path, token)

    async def post(self, path: str, token: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.request("POST", path, token, json=json)

    async def list(self, path: str, token: str) -> dict[str, Any]:
        return await self.request("LIST", path, token)

    async def request(
        self,
        method: str,
        path: str,
        token: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = self.url_for(path)
        client = self._get_client()
        try:
            response = await client.request(
                method,
                url,
                json=json,
                headers={TOKEN_HEADER: token},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            logger.warning("vault %s %s timed out after %.1fs", method, path, self._timeout)
            raise CustodyError(
                ErrorKind.internal_error,
                f"{method} {path} timed out",
                context={"method": method, "path": path, "timeout": True},
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("vault %s %s failed: %s", method, path, type(exc).__name__)
            raise CustodyError(
                ErrorKind.internal_error,
                f"{method} {path} failed: {exc}",
                context={"method": method, "path": path},
            ) from exc

        if not response.is_success:
            kind = classify_status(response.status_code)
            logger.debug("vault %s %s -> %d (%s)", method, path, response.status_code, kind)
            raise CustodyError(
                kind,
                f"{method} {path} returned HTTP {response.status_code}",
                upstream_status=response.status_code,
                context={"method": method, "path": path},
            )

        if response.status_code == 204 or not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as exc:
            raise CustodyError(
                ErrorKind.protocol_error,
                f"{method} {path} returned a non-JSON body",
                upstream_status=response.status_code,
                context={"method": method, "path": path},
            ) from exc
        if not isinstance(body, dict):
            raise CustodyError(
                ErrorKind.protocol_error,
                f"{method} {path} returned a non-object JSON body",
                upstream_status=response.status_code,
                context={"method": method, "path": path},
            )
        return body

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


__all__ = ["API_VERSION", "TOKEN_HEADER", "VaultTransport"]
