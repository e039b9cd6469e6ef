"""
Async Graph API client with pagination, throttling, and safety enforcement.
Requests are issued one at a time; the inventory never runs calls in parallel.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator, Optional

import httpx

from ..config import GraphSettings
from ..safety.guardian import SafetyGuardian, SafetyViolation

logger = logging.getLogger("entra_group_inventory.graph")


class GraphAPIError(Exception):
    """Raised when Graph API returns a non-recoverable error."""
    def __init__(self, status_code: int, message: str, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Graph API Error {status_code} for {url}: {message}")


class GraphClient:
    """
    Async Microsoft Graph API client.
    Features:
      - Safety-validated requests (read-only enforcement)
      - Automatic pagination with @odata.nextLink
      - Optional backoff on 429/503/504 (disabled when max_retries is 0)
      - Scoped connection pool via `async with`
    """

    def __init__(
        self,
        access_token: str,
        guardian: SafetyGuardian,
        settings: Optional[GraphSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.guardian = guardian
        self.settings = settings or GraphSettings()
        self._transport = transport
        self._request_count = 0
        self._throttle_count = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                self.settings.timeout_seconds,
                connect=self.settings.connect_timeout_seconds,
            ),
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/json",
            },
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        """Build full Graph URL from relative endpoint."""
        if endpoint.startswith("http"):
            return endpoint
        endpoint = endpoint.lstrip("/")
        return f"{self.settings.base_url}/{self.settings.api_version}/{endpoint}"

    async def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """
        Execute a single GET request.

        A 404 comes back as {"_not_found": True}, a 403 as {"_forbidden": True}
        so callers can tell a missing object from an empty one.
        """
        url = self._build_url(endpoint)
        self.guardian.validate_request("GET", url)
        return await self._execute_with_retry("GET", url, params=params)

    async def get_all_pages(
        self,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> list[dict]:
        """Fetch all pages of a paginated endpoint into a list."""
        items = []
        async for item in self.get_all_pages_stream(endpoint, params):
            items.append(item)
        return items

    async def get_all_pages_stream(
        self,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> AsyncGenerator[dict, None]:
        """
        Stream all pages of a paginated endpoint, preserving server order.
        Missing or forbidden collections raise GraphAPIError rather than
        yielding nothing.
        """
        params = dict(params or {})
        if "$top" not in params:
            params["$top"] = str(self.settings.page_size)

        url: Optional[str] = self._build_url(endpoint)
        pages = 0

        while url and pages < self.settings.max_pages:
            self.guardian.validate_request("GET", url)
            data = await self._execute_with_retry("GET", url, params=params)

            if data.get("_forbidden"):
                raise GraphAPIError(
                    403,
                    data.get("_error_message", "Forbidden — missing API permission"),
                    url,
                )
            if data.get("_not_found"):
                raise GraphAPIError(404, "Not Found", url)

            for item in data.get("value", []):
                yield item

            url = data.get("@odata.nextLink")
            params = None  # nextLink contains all params
            pages += 1

        if url:
            logger.warning(
                f"Pagination safety cap reached ({self.settings.max_pages} pages) "
                f"for endpoint: {endpoint}"
            )

    async def _execute_with_retry(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
    ) -> dict:
        """Execute request, backing off on throttling while retries remain."""
        backoff = self.settings.initial_backoff_seconds
        max_retries = self.settings.max_retries

        for attempt in range(max_retries + 1):
            response = await self._execute_raw(method, url, params=params)
            self._request_count += 1

            if response.status_code == 200:
                if not response.content or not response.content.strip():
                    return {"value": []}
                try:
                    return response.json()
                except ValueError as e:
                    logger.debug(f"Undecodable body from {url}: {e}")
                    raise GraphAPIError(response.status_code, "Invalid JSON body", url) from e

            if response.status_code == 404:
                logger.debug(f"404 Not Found: {url}")
                return {"value": [], "_not_found": True}

            if response.status_code == 403:
                error_msg = _error_message(response, "Forbidden")
                logger.debug(f"403 Forbidden: {url} — {error_msg}")
                return {"value": [], "_forbidden": True, "_error_message": error_msg}

            if response.status_code in (429, 503, 504) and attempt < max_retries:
                self._throttle_count += 1
                retry_after = float(response.headers.get("Retry-After", backoff))
                wait_time = max(retry_after, backoff)
                logger.warning(
                    f"Throttled ({response.status_code}) on {url}. "
                    f"Retry {attempt + 1}/{max_retries} in {wait_time:.1f}s"
                )
                await asyncio.sleep(wait_time)
                backoff = min(
                    backoff * self.settings.backoff_multiplier,
                    self.settings.max_backoff_seconds,
                )
                continue

            raise GraphAPIError(
                response.status_code,
                _error_message(response, response.text[:200]),
                url,
            )

        raise GraphAPIError(429, "Retries exhausted", url)

    async def _execute_raw(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        """Execute raw HTTP request."""
        if not self._client:
            raise RuntimeError("GraphClient not initialized. Use 'async with' context.")

        if method == "GET":
            return await self._client.get(url, params=params)
        raise SafetyViolation(f"Unsupported method at raw level: {method}")

    def get_stats(self) -> dict:
        """Return client statistics."""
        return {
            "total_requests": self._request_count,
            "throttle_events": self._throttle_count,
        }


def _error_message(response: httpx.Response, default: str) -> str:
    """Pull the Graph error message out of a response body, if any."""
    try:
        body = response.json() if response.content else {}
    except ValueError:
        return default
    return body.get("error", {}).get("message", default)
