"""
Tests for channel-first dispatch with HTTP fallback.
"""

import asyncio
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from tests.mocks.channel import ChannelScript, eventually
from tests.mocks.server import CHANNEL_BALANCE, HTTP_BALANCE, SESSION_BTC
from tradelink.api import operations as ops
from tradelink.api.models import TotalBalance, TradingSession
from tradelink.core.errors import FallbackHttpError, ServerRejectedError
from tradelink.core.types import CloseReason, TransportMode
from tradelink.telemetry.metrics import FALLBACKS, TransportMetrics
from tradelink.transport.connection import ConnectionManager
from tradelink.transport.correlator import RequestCorrelator
from tradelink.transport.dispatcher import FallbackDispatcher
from tradelink.transport.http import HttpFallbackClient
from tradelink.transport.protocol import ResponseMessage, decode


class Rig:
    """Connection, correlator and dispatcher wired like the client wires them."""

    def __init__(self, script: ChannelScript, metrics: TransportMetrics) -> None:
        self.metrics = metrics
        self.connection = ConnectionManager(
            url="ws://test/ws",
            on_frame=self._route,
            connect_timeout=0.2,
            reconnect_delay=0.01,
            max_reconnect_attempts=2,
            health_check_interval=3600.0,
            connector=script,
            metrics=metrics,
        )
        self.correlator = RequestCorrelator(self.connection, timeout=0.1, metrics=metrics)
        self.connection.add_close_hook(lambda reason: self.correlator.fail_all("closed"))
        self.http = AsyncMock(spec=HttpFallbackClient)
        self.dispatcher = FallbackDispatcher(self.connection, self.correlator, self.http, metrics)

    def _route(self, raw: str | bytes) -> None:
        message = decode(raw)
        if isinstance(message, ResponseMessage):
            self.correlator.resolve(message)


@pytest.fixture
def script() -> ChannelScript:
    """Channel answering only what each test scripts."""
    return ChannelScript()


@pytest_asyncio.fixture
async def rig(script: ChannelScript, metrics: TransportMetrics) -> AsyncIterator[Rig]:
    """Connected rig."""
    wired = Rig(script, metrics)
    await wired.connection.connect()
    yield wired
    await wired.connection.disconnect()


class TestChannelPath:
    """Tests for calls served over the channel."""

    @pytest.mark.asyncio
    async def test_channel_success(self, rig: Rig, script: ChannelScript) -> None:
        """Test a channel answer is decoded and HTTP is not touched."""
        script.results["getAllSessions"] = [SESSION_BTC]

        sessions = await rig.dispatcher.call(ops.GET_ALL_SESSIONS)

        assert [s.symbol for s in sessions] == ["BTCUSDT"]
        assert isinstance(sessions[0], TradingSession)
        rig.http.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_server_rejection_not_retried(self, rig: Rig, script: ChannelScript) -> None:
        """Test success false surfaces directly without fallback."""
        script.rejections["getSessionStatus"] = "Session not found"

        with pytest.raises(ServerRejectedError, match="Session not found"):
            await rig.dispatcher.call(
                ops.GET_SESSION_STATUS, {"symbol": "XRPUSDT"}, path_params={"symbol": "XRPUSDT"}
            )

        rig.http.request.assert_not_awaited()
        assert rig.connection.mode is TransportMode.CHANNEL_PREFERRED
        assert len(script.current.requests("getSessionStatus")) == 1


class TestFallback:
    """Tests for falling back to HTTP."""

    @pytest.mark.asyncio
    async def test_forced_fallback_uses_http(self, rig: Rig, script: ChannelScript) -> None:
        """Test a demoted client goes straight to HTTP."""
        rig.connection.demote("test")
        rig.http.request.return_value = HTTP_BALANCE

        balance = await rig.dispatcher.call(ops.GET_TOTAL_BALANCE)

        assert balance == TotalBalance.model_validate(CHANNEL_BALANCE)
        rig.http.request.assert_awaited_once_with(
            "GET",
            "/trading/total-balance",
            params=None,
            json=None,
            error_message="Failed to load total balance",
        )
        assert script.current.requests() == []
        assert rig.metrics.get_counter(FALLBACKS) == 0

    @pytest.mark.asyncio
    async def test_read_timeout_retries_then_falls_back(
        self, rig: Rig, script: ChannelScript
    ) -> None:
        """Test an unanswered read is retried once, then served over HTTP."""
        rig.http.request.return_value = [SESSION_BTC]

        sessions = await rig.dispatcher.call(ops.GET_ALL_SESSIONS)

        assert sessions[0].id == "42"
        assert len(script.current.requests("getAllSessions")) == 2
        assert rig.connection.mode is TransportMode.FALLBACK_ONLY
        assert rig.metrics.get_counter(FALLBACKS) == 1

    @pytest.mark.asyncio
    async def test_write_timeout_not_retried(self, rig: Rig, script: ChannelScript) -> None:
        """Test a state-changing call goes over the channel at most once."""
        rig.http.request.return_value = SESSION_BTC
        body = {"symbol": "BTCUSDT", "initialBalance": 1000.0, "reserveBalance": 200.0}

        session = await rig.dispatcher.call(ops.INITIALIZE_SESSION, body, body=body)

        assert session.symbol == "BTCUSDT"
        assert len(script.current.requests("initializeSession")) == 1
        rig.http.request.assert_awaited_once_with(
            "POST",
            "/trading/session/initialize",
            params=None,
            json=body,
            error_message="Failed to initialize session",
        )

    @pytest.mark.asyncio
    async def test_channel_drop_reconnects_and_retries(
        self, rig: Rig, script: ChannelScript
    ) -> None:
        """Test a read interrupted by a drop is retried on the new channel."""
        call = asyncio.create_task(rig.dispatcher.call(ops.GET_ALL_SESSIONS))
        await eventually(lambda: len(script.current.requests()) == 1)
        first = script.current

        script.results["getAllSessions"] = [SESSION_BTC]
        first.drop()

        sessions = await call
        assert sessions[0].symbol == "BTCUSDT"
        assert script.current is not first
        rig.http.request.assert_not_awaited()
        assert rig.connection.mode is TransportMode.CHANNEL_PREFERRED

    @pytest.mark.asyncio
    async def test_server_close_skips_reconnect(self, rig: Rig, script: ChannelScript) -> None:
        """Test a read cut off by a server close goes to HTTP without reopening the channel."""
        rig.http.request.return_value = [SESSION_BTC]
        call = asyncio.create_task(rig.dispatcher.call(ops.GET_ALL_SESSIONS))
        await eventually(lambda: len(script.current.requests()) == 1)
        first = script.current

        script.results["getAllSessions"] = [SESSION_BTC]
        first.server_close(4001)

        sessions = await call
        assert sessions[0].symbol == "BTCUSDT"
        assert script.calls == 1
        assert script.current is first
        rig.http.request.assert_awaited_once()
        assert rig.connection.last_close_reason is CloseReason.SERVER_INITIATED
        assert rig.connection.mode is TransportMode.FALLBACK_ONLY
        assert rig.metrics.get_counter(FALLBACKS) == 1

    @pytest.mark.asyncio
    async def test_bad_channel_payload_falls_back(self, rig: Rig, script: ChannelScript) -> None:
        """Test an undecodable channel result is retried once, then served over HTTP."""
        script.results["getTotalBalance"] = "not a balance"
        rig.http.request.return_value = HTTP_BALANCE

        balance = await rig.dispatcher.call(ops.GET_TOTAL_BALANCE)

        assert balance.total_balance == 5000.0
        assert rig.connection.mode is TransportMode.FALLBACK_ONLY
        assert len(script.current.requests("getTotalBalance")) == 2

    @pytest.mark.asyncio
    async def test_http_error_propagates(self, rig: Rig) -> None:
        """Test the final HTTP failure reaches the caller."""
        rig.connection.demote("test")
        rig.http.request.side_effect = FallbackHttpError("Failed to load sessions: HTTP 500", 500)

        with pytest.raises(FallbackHttpError) as exc_info:
            await rig.dispatcher.call(ops.GET_ALL_SESSIONS)
        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_bad_http_payload(self, rig: Rig) -> None:
        """Test an undecodable HTTP body is a fallback error."""
        rig.connection.demote("test")
        rig.http.request.return_value = {"unexpected": True}

        with pytest.raises(FallbackHttpError, match="Failed to load sessions"):
            await rig.dispatcher.call(ops.GET_ALL_SESSIONS)

    @pytest.mark.asyncio
    async def test_path_params_quoted(self, rig: Rig) -> None:
        """Test path values are URL-quoted."""
        rig.connection.demote("test")
        rig.http.request.return_value = []

        await rig.dispatcher.call(
            ops.GET_SESSION_TRADES,
            {"sessionId": "a/b"},
            path_params={"session_id": "a/b"},
        )

        assert rig.http.request.await_args.args == ("GET", "/trading/session/a%2Fb/trades")
