"""
Tests for the fallback REST client.
"""

from collections.abc import AsyncIterator

import orjson
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from tradelink.core.errors import FallbackHttpError
from tradelink.telemetry.metrics import HTTP_REQUESTS, HTTP_RTT, TransportMetrics
from tradelink.transport.http import HttpFallbackClient


def _app() -> web.Application:
    async def sessions(request: web.Request) -> web.Response:
        return web.Response(body=orjson.dumps([{"id": "1"}]), content_type="application/json")

    async def echo(request: web.Request) -> web.Response:
        body = await request.json(loads=orjson.loads)
        payload = {"query": dict(request.query), "body": body}
        return web.Response(body=orjson.dumps(payload), content_type="application/json")

    async def empty(request: web.Request) -> web.Response:
        return web.Response(status=204)

    async def not_found(request: web.Request) -> web.Response:
        return web.Response(
            status=404,
            body=orjson.dumps({"message": "Session not found"}),
            content_type="application/json",
        )

    async def broken(request: web.Request) -> web.Response:
        return web.Response(status=500, text="upstream exploded")

    async def garbage(request: web.Request) -> web.Response:
        return web.Response(text="{not json", content_type="application/json")

    async def not_utf8(request: web.Request) -> web.Response:
        return web.Response(body=b"\xff\xfe\xfa", content_type="application/json")

    app = web.Application()
    app.router.add_get("/sessions", sessions)
    app.router.add_post("/echo", echo)
    app.router.add_delete("/empty", empty)
    app.router.add_get("/missing", not_found)
    app.router.add_get("/broken", broken)
    app.router.add_get("/garbage", garbage)
    app.router.add_get("/not-utf8", not_utf8)
    return app


@pytest_asyncio.fixture
async def rest_server() -> AsyncIterator[TestServer]:
    """Small REST app on a free port."""
    server = TestServer(_app())
    await server.start_server()
    yield server
    await server.close()


@pytest_asyncio.fixture
async def http(
    rest_server: TestServer, metrics: TransportMetrics
) -> AsyncIterator[HttpFallbackClient]:
    """Client pointed at the REST app."""
    client = HttpFallbackClient(f"{str(rest_server.make_url('')).rstrip('/')}/", metrics=metrics)
    yield client
    await client.close()


class TestHttpFallbackClient:
    """Tests for HttpFallbackClient."""

    def test_base_url_normalized(self) -> None:
        """Test the trailing slash is removed."""
        assert HttpFallbackClient("http://localhost:3000/").base_url == "http://localhost:3000"

    @pytest.mark.asyncio
    async def test_get_json(self, http: HttpFallbackClient, metrics: TransportMetrics) -> None:
        """Test a JSON body is parsed and metrics recorded."""
        data = await http.request("GET", "/sessions")

        assert data == [{"id": "1"}]
        assert metrics.get_counter(HTTP_REQUESTS) == 1
        assert metrics.get_latency_stats(HTTP_RTT).count == 1

    @pytest.mark.asyncio
    async def test_query_and_body(self, http: HttpFallbackClient) -> None:
        """Test query parameters and JSON bodies are sent."""
        data = await http.request(
            "POST", "/echo", params={"symbols": "BTCUSDT,ETHUSDT"}, json={"enabled": True}
        )

        assert data == {"query": {"symbols": "BTCUSDT,ETHUSDT"}, "body": {"enabled": True}}

    @pytest.mark.asyncio
    async def test_empty_body(self, http: HttpFallbackClient) -> None:
        """Test a body-less success yields None."""
        assert await http.request("DELETE", "/empty") is None

    @pytest.mark.asyncio
    async def test_error_status_with_message(self, http: HttpFallbackClient) -> None:
        """Test the service message is carried in the error."""
        with pytest.raises(FallbackHttpError) as exc_info:
            await http.request("GET", "/missing", error_message="Failed to load session status")

        assert exc_info.value.status == 404
        assert str(exc_info.value) == "Failed to load session status: HTTP 404 (Session not found)"

    @pytest.mark.asyncio
    async def test_error_status_plain_text(self, http: HttpFallbackClient) -> None:
        """Test a plain text error body."""
        with pytest.raises(FallbackHttpError, match="HTTP 500 \\(upstream exploded\\)"):
            await http.request("GET", "/broken")

    @pytest.mark.asyncio
    async def test_invalid_json(self, http: HttpFallbackClient) -> None:
        """Test a malformed body is reported."""
        with pytest.raises(FallbackHttpError, match="invalid JSON"):
            await http.request("GET", "/garbage")

    @pytest.mark.asyncio
    async def test_body_not_utf8(self, http: HttpFallbackClient) -> None:
        """Test a body that is not UTF-8 is reported as invalid JSON."""
        with pytest.raises(FallbackHttpError, match="invalid JSON") as exc_info:
            await http.request("GET", "/not-utf8", error_message="Failed to load sessions")
        assert exc_info.value.status == 200
        assert str(exc_info.value).startswith("Failed to load sessions")

    @pytest.mark.asyncio
    async def test_network_error(self, metrics: TransportMetrics) -> None:
        """Test an unreachable service is reported as a fallback error."""
        client = HttpFallbackClient("http://127.0.0.1:9", timeout=1.0, metrics=metrics)
        try:
            with pytest.raises(FallbackHttpError, match="Failed to load sessions"):
                await client.request("GET", "/sessions", error_message="Failed to load sessions")
        finally:
            await client.close()

        assert metrics.get_counter(HTTP_REQUESTS) == 0

    @pytest.mark.asyncio
    async def test_context_manager_closes_session(self, rest_server: TestServer) -> None:
        """Test the session is released on exit."""
        async with HttpFallbackClient(str(rest_server.make_url(""))) as client:
            assert await client.request("GET", "/sessions") == [{"id": "1"}]

        assert client._session is None
