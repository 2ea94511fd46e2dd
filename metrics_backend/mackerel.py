"""
Mackerel Backend - Host and custom-metric API adapter.

Endpoints used:
- GET  /api/v0/hosts?name=       - Find hosts by name
- POST /api/v0/hosts             - Register a host
- POST /api/v0/tsdb              - Post host metric values
- POST /api/v0/graph-defs/create - Register custom graph definitions

Authentication: X-Api-Key header.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable, Optional, Sequence

import aiohttp

from metric_catalog.models import GraphDefinition
from metrics_backend.base import BaseMetricsBackend
from metrics_backend.exceptions import (
    AuthenticationError,
    BackendRateLimitError,
    BackendRequestError,
    InvalidResponseError,
)
from metrics_backend.models import Host, MetricValue


logger = logging.getLogger(__name__)


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """
    Parse a Retry-After header: delay in seconds or an HTTP date.

    Returns None when the header is absent or unparseable.
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0, int((when - datetime.now(timezone.utc)).total_seconds()))


class MackerelBackend(BaseMetricsBackend):
    """
    Mackerel REST API client.

    One aiohttp session per backend; the total request timeout is the
    only timeout applied.
    """

    BASE_URL = "https://api.mackerelio.com"
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    @property
    def name(self) -> str:
        return "mackerel"

    async def find_hosts_by_name(self, address: str) -> list[Host]:
        """Find hosts registered under the given name."""
        data = await self._make_request("GET", "/api/v0/hosts", params={"name": address})
        try:
            return [Host.from_api(h) for h in data.get("hosts", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(
                message=f"Malformed host list for {address}",
                backend_name=self.name,
                original_error=e,
            )

    async def create_host(self, address: str) -> str:
        """Register a host named after the address."""
        data = await self._make_request(
            "POST",
            "/api/v0/hosts",
            json_body={"name": address, "meta": {}},
        )
        host_id = data.get("id") if isinstance(data, dict) else None
        if not host_id:
            raise InvalidResponseError(
                message=f"Host creation for {address} returned no id",
                backend_name=self.name,
                context={"response": str(data)[:500]},
            )
        logger.info(f"[{self.name}] Host created: {host_id} -> {address}")
        return host_id

    async def post_metric_values(
        self,
        host_id: str,
        values: Sequence[MetricValue],
    ) -> None:
        """Post a batch of values for one host in a single request."""
        if not host_id:
            raise ValueError("host_id is required")
        payload = [value.to_payload(host_id) for value in values]
        await self._make_request("POST", "/api/v0/tsdb", json_body=payload)

    async def define_graphs(self, graphs: Iterable[GraphDefinition]) -> None:
        """Register graph definitions for the custom metrics."""
        payload = [graph.to_graph_def() for graph in graphs]
        if not payload:
            return
        await self._make_request("POST", "/api/v0/graph-defs/create", json_body=payload)
        logger.info(f"[{self.name}] Registered {len(payload)} graph definition(s)")

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "X-Api-Key": self._api_key,
            "Accept": "application/json",
            "User-Agent": "cloudwatch-mackerel-relay/1.0",
        }

    async def _make_request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """Make HTTP request with error handling."""
        session = await self._get_session()
        url = f"{self._base_url}{path}"

        start_time = time.time()
        try:
            async with session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._get_default_headers(),
            ) as response:
                latency_ms = (time.time() - start_time) * 1000

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise BackendRateLimitError(
                        message="Rate limit exceeded",
                        backend_name=self.name,
                        retry_after_seconds=parse_retry_after(retry_after),
                        request_url=url,
                    )

                if response.status in (401, 403):
                    raise AuthenticationError(
                        message=f"HTTP {response.status}: API key rejected",
                        backend_name=self.name,
                        status_code=response.status,
                        request_url=url,
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise BackendRequestError(
                        message=f"HTTP {response.status}",
                        backend_name=self.name,
                        status_code=response.status,
                        response_body=body[:1000],
                        request_url=url,
                    )

                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise InvalidResponseError(
                        message=f"{method} {path} returned a non-JSON body",
                        backend_name=self.name,
                        original_error=e,
                        context={"status_code": response.status, "request_url": url},
                    )
                logger.debug(f"[{self.name}] {method} {path} completed in {latency_ms:.1f}ms")
                return data

        except aiohttp.ClientError as e:
            raise BackendRequestError(
                message=f"Connection error: {e}",
                backend_name=self.name,
                request_url=url,
                original_error=e,
            )
        except asyncio.TimeoutError as e:
            raise BackendRequestError(
                message=f"Request timed out after {self._timeout}s",
                backend_name=self.name,
                request_url=url,
                original_error=e,
            )

    async def close(self) -> None:
        """Close the HTTP session if owned."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
