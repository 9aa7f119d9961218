"""API client for the todosync backend."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import httpx

from todosync.models import RemoteConfig
from todosync.utils.logger import get_logger

logger = get_logger("api")

TokenProvider = Callable[[], str | None]


class APIClient:
    """HTTP client for the todosync backend.

    Only GET requests are retried (5xx and connection errors, exponential
    backoff). Writes fail fast and the error reaches the caller unmodified.
    """

    def __init__(
        self,
        config: RemoteConfig | None = None,
        *,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or RemoteConfig()
        self.base_url = self.config.endpoint.rstrip("/")
        self.timeout = self.config.timeout
        self.token_provider = token_provider
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> APIClient:
        """Enter the async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the async context manager and ensure the client is closed."""
        await self.close()

    def _get_headers(self, skip_auth: bool = False) -> dict[str, str]:
        """Get HTTP headers with authentication."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if not skip_auth and self.token_provider is not None:
            token = self.token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _get_client(self, skip_auth: bool = False) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        # Always refresh headers to pick up the latest token
        self._client.headers.pop("Authorization", None)
        self._client.headers.update(self._get_headers(skip_auth=skip_auth))
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        retry: int | None = None,
        skip_auth: bool = False,
    ) -> httpx.Response:
        """Make an HTTP request to the API."""
        if retry is None:
            retry = self.config.retry if method == "GET" else 0

        client = await self._get_client(skip_auth=skip_auth)
        url = path if path.startswith("/") else f"/{path}"

        last_exception: Exception | None = None
        for attempt in range(retry + 1):
            try:
                response = await client.request(method=method, url=url, json=json, params=params)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                # Don't retry client errors (4xx)
                if 400 <= e.response.status_code < 500:
                    raise
                last_exception = e
            except httpx.RequestError as e:
                last_exception = e

            if attempt < retry:
                logger.debug("%s %s failed (attempt %d), retrying", method, url, attempt + 1)
                await asyncio.sleep(2**attempt)

        if last_exception:
            raise last_exception
        raise RuntimeError("Request failed after all retries")

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> httpx.Response:
        """Make a GET request."""
        return await self.request("GET", path, params=params)

    async def post(
        self,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        skip_auth: bool = False,
    ) -> httpx.Response:
        """Make a POST request."""
        return await self.request("POST", path, json=json, params=params, skip_auth=skip_auth)

    async def put(
        self, path: str, *, json: dict[str, Any] | None = None, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        """Make a PUT request."""
        return await self.request("PUT", path, json=json, params=params)

    async def patch(self, path: str, *, json: dict[str, Any] | None = None) -> httpx.Response:
        """Make a PATCH request."""
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> httpx.Response:
        """Make a DELETE request."""
        return await self.request("DELETE", path)
