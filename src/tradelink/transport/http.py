"""
Async REST client for the stateless fallback path.

Optimized for dashboard polling with:
- Connection pooling and keep-alive
- Fast JSON parsing with orjson
- One total timeout per call
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiohttp
import orjson

from tradelink.config.constants import DEFAULT_HTTP_TIMEOUT
from tradelink.core.errors import FallbackHttpError
from tradelink.telemetry.metrics import HTTP_REQUESTS, HTTP_RTT, TransportMetrics
from tradelink.utils.time import LatencyTimer


logger = logging.getLogger(__name__)


class HttpFallbackClient:
    """
    Async REST client for the trading service.

    Features:
    - Single session with connection pooling
    - orjson for fast JSON parsing
    - Non-success status and malformed bodies raised as ``FallbackHttpError``
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        metrics: TransportMetrics | None = None,
    ) -> None:
        """
        Initialize the REST client.

        Args:
            base_url: Service base URL (no trailing slash).
            timeout: Total timeout per call in seconds.
            metrics: Optional metrics collector.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._metrics = metrics or TransportMetrics()
        self._session: aiohttp.ClientSession | None = None

    @property
    def base_url(self) -> str:
        """Get the service base URL."""
        return self._base_url

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=20,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )

            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=self._timeout,
                headers={"Accept": "application/json"},
                json_serialize=lambda x: orjson.dumps(x).decode(),
            )

        return self._session

    async def close(self) -> None:
        """Close the client session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    @asynccontextmanager
    async def _request_context(self, error_message: str) -> AsyncIterator[aiohttp.ClientSession]:
        """Context manager translating network failures."""
        session = await self._get_session()
        try:
            yield session
        except aiohttp.ClientError as e:
            raise FallbackHttpError(f"{error_message}: network error: {e}") from e
        except TimeoutError as e:
            raise FallbackHttpError(f"{error_message}: timed out") from e

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        error_message: str = "Request failed",
    ) -> Any:
        """
        Make a REST call.

        Args:
            method: HTTP method (GET, POST, DELETE).
            path: Endpoint path, already formatted.
            params: Query string parameters.
            json: JSON body.
            error_message: Human-readable prefix for failures.

        Returns:
            Parsed JSON body, or None for an empty body.

        Raises:
            FallbackHttpError: On network error, timeout, non-2xx status or
                malformed JSON.
        """
        url = f"{self._base_url}{path}"
        logger.debug(f"HTTP {method} {path}")

        with LatencyTimer() as timer:
            async with self._request_context(error_message) as session:
                async with session.request(method, url, params=params, json=json) as response:
                    data = await self._handle_response(response, error_message)

        self._metrics.increment_counter(HTTP_REQUESTS)
        self._metrics.record_latency(HTTP_RTT, timer.latency_us)
        return data

    async def _handle_response(self, response: aiohttp.ClientResponse, error_message: str) -> Any:
        """Parse and validate response."""
        raw = await response.read()

        if response.status >= 400:
            detail = self._error_detail(raw)
            message = f"{error_message}: HTTP {response.status}"
            if detail:
                message = f"{message} ({detail})"
            raise FallbackHttpError(message, status=response.status)

        if not raw.strip():
            return None

        # orjson rejects invalid UTF-8 as a JSONDecodeError
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise FallbackHttpError(
                f"{error_message}: invalid JSON response: {e}", status=response.status
            ) from e

    @staticmethod
    def _error_detail(raw: bytes) -> str:
        """Pull a message out of an error body, if it has one."""
        try:
            body = orjson.loads(raw)
        except orjson.JSONDecodeError:
            return raw.decode(errors="replace").strip()[:200]

        if isinstance(body, dict):
            for key in ("message", "error", "msg"):
                if isinstance(body.get(key), str):
                    return str(body[key])
        return ""

    async def __aenter__(self) -> "HttpFallbackClient":
        """Async context manager entry."""
        await self._get_session()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()
