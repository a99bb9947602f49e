"""InfluxDB v2 HTTP API client.

Thin async wrapper over the handful of endpoints the gateway's
capabilities use. Every request carries ``Authorization: Token <token>``;
any non-2xx answer raises ``InfluxError``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx


class DomainError(Exception):
    """A domain operation failed. Only its message reaches the client."""


class InfluxError(DomainError):
    """The InfluxDB API answered with an error, or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @classmethod
    def from_response(cls, response: httpx.Response) -> InfluxError:
        body = response.text
        return cls(
            f"InfluxDB API Error ({response.status_code}): {body}",
            status_code=response.status_code,
            body=body,
        )


class InfluxClient:
    """Async InfluxDB client.

    Usage:
        async with InfluxClient("http://localhost:8086", token) as client:
            csv_text = await client.query("acme", 'from(bucket: "b") |> range(start: -1h)')
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None
        self._log = logger or logging.getLogger(__name__)

    async def __aenter__(self) -> InfluxClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Token {self._token}"},
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._http_client

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Execute a request, raising ``InfluxError`` on failure."""
        self._log.debug(f"InfluxDB {method} {path}")
        try:
            response = await self._client().request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise InfluxError(f"Cannot reach InfluxDB at {self.base_url}: {e}") from e

        if response.is_error:
            self._log.warning(f"InfluxDB {method} {path} returned {response.status_code}")
            raise InfluxError.from_response(response)
        return response

    # =========================================================================
    # Data
    # =========================================================================

    async def query(self, org: str, flux: str) -> str:
        """Run a Flux query and return the raw annotated CSV."""
        response = await self._request(
            "POST",
            "/api/v2/query",
            params={"org": org},
            json={"query": flux, "type": "flux"},
            headers={"Accept": "application/csv"},
        )
        return response.text

    async def write(
        self,
        org: str,
        bucket: str,
        data: str,
        precision: str | None = None,
    ) -> None:
        """Write line-protocol data."""
        params = {"org": org, "bucket": bucket}
        if precision:
            params["precision"] = precision
        await self._request(
            "POST",
            "/api/v2/write",
            params=params,
            content=data.encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )

    # =========================================================================
    # Organizations and buckets
    # =========================================================================

    async def list_orgs(self) -> list[dict[str, Any]]:
        response = await self._request("GET", "/api/v2/orgs")
        return response.json().get("orgs") or []

    async def list_buckets(self) -> list[dict[str, Any]]:
        response = await self._request("GET", "/api/v2/buckets")
        return response.json().get("buckets") or []

    async def create_bucket(
        self,
        name: str,
        org_id: str,
        retention_seconds: int | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"name": name, "orgID": org_id}
        if retention_seconds:
            body["retentionRules"] = [{"type": "expire", "everySeconds": retention_seconds}]
        response = await self._request("POST", "/api/v2/buckets", json=body)
        return response.json()

    async def create_org(self, name: str, description: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"name": name}
        if description:
            body["description"] = description
        response = await self._request("POST", "/api/v2/orgs", json=body)
        return response.json()

    # =========================================================================
    # Health
    # =========================================================================

    async def ping(self) -> dict[str, str]:
        """Ping the server and return its response headers."""
        response = await self._request("GET", "/ping")
        return dict(response.headers)

    async def close(self) -> None:
        """Close the client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
