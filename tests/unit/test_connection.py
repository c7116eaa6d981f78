"""
Tests for the channel connection manager.

Tests connect coalescing, failure absorption, close classification,
bounded reconnection and the health check.
"""

import asyncio

import pytest

from tests.mocks.channel import ChannelScript, eventually
from tradelink.core.errors import TransportUnavailableError
from tradelink.core.types import CloseReason, ConnectionState, TransportMode
from tradelink.telemetry.metrics import RECONNECT_ATTEMPTS, TransportMetrics
from tradelink.transport.connection import ConnectionManager, classify_close


class TestClassifyClose:
    """Tests for close code classification."""

    @pytest.mark.parametrize("code", [1000, 1008, 4000, 4401])
    def test_server_initiated_codes(self, code: int) -> None:
        """Test deliberate server closes."""
        assert classify_close(code) is CloseReason.SERVER_INITIATED

    @pytest.mark.parametrize("code", [None, 1001, 1006, 1011, 3000])
    def test_network_lost_codes(self, code: int | None) -> None:
        """Test everything else counts as network loss."""
        assert classify_close(code) is CloseReason.NETWORK_LOST


class TestConnect:
    """Tests for opening the channel."""

    @pytest.mark.asyncio
    async def test_connect_success(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test a successful open leaves the channel preferred."""
        await connection.connect()

        assert connection.state is ConnectionState.CONNECTED
        assert connection.mode is TransportMode.CHANNEL_PREFERRED
        assert connection.channel_available
        assert script.calls == 1

    @pytest.mark.asyncio
    async def test_connect_when_connected_is_noop(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test connecting twice in sequence opens once."""
        await connection.connect()
        await connection.connect()

        assert script.calls == 1
        assert connection.connect_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_connects_coalesce(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test concurrent callers share one open attempt."""
        script.delay_next(0.05)

        await asyncio.gather(connection.connect(), connection.connect(), connection.connect())

        assert script.calls == 1
        assert connection.is_connected

    @pytest.mark.asyncio
    async def test_connect_error_demotes(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test an immediate open error is absorbed."""
        script.fail_next()

        await connection.connect()

        assert connection.state is ConnectionState.DISCONNECTED
        assert connection.mode is TransportMode.FALLBACK_ONLY
        assert not connection.channel_available

    @pytest.mark.asyncio
    async def test_connect_timeout_demotes(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test an open that never completes resolves by the timeout."""
        script.hang_next()
        loop = asyncio.get_running_loop()
        started = loop.time()

        await connection.connect()

        assert loop.time() - started < 1.0
        assert connection.mode is TransportMode.FALLBACK_ONLY

    @pytest.mark.asyncio
    async def test_slow_open_demotes(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test an open slower than the timeout counts as failed."""
        script.delay_next(0.5)

        await connection.connect()

        assert connection.mode is TransportMode.FALLBACK_ONLY
        assert not connection.is_connected

    @pytest.mark.asyncio
    async def test_connect_restores_channel_mode(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test a later successful open switches back to the channel."""
        script.fail_next()
        await connection.connect()
        assert connection.mode is TransportMode.FALLBACK_ONLY

        await connection.connect()

        assert connection.mode is TransportMode.CHANNEL_PREFERRED
        assert connection.is_connected

    @pytest.mark.asyncio
    async def test_connected_hook_runs(self, connection: ConnectionManager) -> None:
        """Test connected hooks run after every open."""
        calls: list[str] = []

        async def hook() -> None:
            calls.append("connected")

        connection.add_connected_hook(hook)
        await connection.connect()

        assert calls == ["connected"]


class TestMessaging:
    """Tests for sending and receiving frames."""

    @pytest.mark.asyncio
    async def test_send_when_down_raises(self, connection: ConnectionManager) -> None:
        """Test sending without a channel."""
        with pytest.raises(TransportUnavailableError):
            await connection.send("{}")

    @pytest.mark.asyncio
    async def test_send_failure_raises(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test a failed write is reported as unavailable."""
        await connection.connect()
        script.current.fail_sends = True

        with pytest.raises(TransportUnavailableError):
            await connection.send("{}")

    @pytest.mark.asyncio
    async def test_inbound_frames_delivered(
        self,
        connection: ConnectionManager,
        script: ChannelScript,
        frames: list[str | bytes],
    ) -> None:
        """Test text frames reach the frame handler in order."""
        await connection.connect()

        script.current.push_raw("one")
        script.current.push_raw("two")

        await eventually(lambda: len(frames) == 2)
        assert frames == ["one", "two"]


class TestClose:
    """Tests for channel close handling."""

    @pytest.mark.asyncio
    async def test_server_close_demotes_without_reconnect(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test a deliberate server close suppresses reconnection."""
        reasons: list[CloseReason] = []
        connection.add_close_hook(reasons.append)
        await connection.connect()

        script.current.server_close(4001)

        await eventually(lambda: not connection.is_connected)
        await asyncio.sleep(0.05)
        assert reasons == [CloseReason.SERVER_INITIATED]
        assert connection.mode is TransportMode.FALLBACK_ONLY
        assert script.calls == 1

    @pytest.mark.asyncio
    async def test_network_loss_reconnects(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test a dropped channel is reopened."""
        reasons: list[CloseReason] = []
        connection.add_close_hook(reasons.append)
        await connection.connect()
        first = script.current

        first.drop()

        await eventually(lambda: script.calls == 2 and connection.is_connected)
        assert reasons == [CloseReason.NETWORK_LOST]
        assert script.current is not first
        assert connection.mode is TransportMode.CHANNEL_PREFERRED
        assert connection.reconnect_attempts == 0

    @pytest.mark.asyncio
    async def test_disconnect_reports_client_requested(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test an owner disconnect closes the socket without reconnecting."""
        reasons: list[CloseReason] = []
        connection.add_close_hook(reasons.append)
        await connection.connect()
        sock = script.current

        await connection.disconnect()
        await asyncio.sleep(0.05)

        assert sock.closed
        assert reasons == [CloseReason.CLIENT_REQUESTED]
        assert connection.state is ConnectionState.DISCONNECTED
        assert script.calls == 1

    @pytest.mark.asyncio
    async def test_disconnect_when_never_connected(self, connection: ConnectionManager) -> None:
        """Test disconnect is safe before connect."""
        await connection.disconnect()

        assert connection.state is ConnectionState.DISCONNECTED


class TestReconnection:
    """Tests for bounded reconnection and the health check."""

    @pytest.mark.asyncio
    async def test_reconnect_bounded(
        self,
        connection: ConnectionManager,
        script: ChannelScript,
        metrics: TransportMetrics,
    ) -> None:
        """Test reconnection stops after the attempt budget."""
        await connection.connect()
        script.refuse = True

        script.current.drop()

        # 1 initial open + 2 reconnect attempts
        await eventually(lambda: script.calls == 3)
        await asyncio.sleep(0.1)
        assert script.calls == 3
        assert connection.mode is TransportMode.FALLBACK_ONLY
        assert connection.reconnect_policy.exhausted
        assert metrics.get_counter(RECONNECT_ATTEMPTS) == 2

    @pytest.mark.asyncio
    async def test_health_check_restores_after_exhaustion(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test the health check is the way back after giving up."""
        await connection.connect()
        script.refuse = True
        script.current.drop()
        await eventually(lambda: script.calls == 3)
        await asyncio.sleep(0.05)

        script.refuse = False
        attempted = await connection.probe()

        assert attempted
        assert connection.is_connected
        assert connection.mode is TransportMode.CHANNEL_PREFERRED
        assert connection.reconnect_attempts == 0

    @pytest.mark.asyncio
    async def test_health_check_skips_when_connected(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test the health check leaves a healthy channel alone."""
        await connection.connect()

        assert not await connection.probe()
        assert script.calls == 1

    @pytest.mark.asyncio
    async def test_health_check_skips_after_server_close(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test a server-severed channel is not reopened by the health check."""
        await connection.connect()
        script.current.server_close(1008)
        await eventually(lambda: not connection.is_connected)

        assert not await connection.probe()
        assert script.calls == 1

    @pytest.mark.asyncio
    async def test_health_check_skips_after_disconnect(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test the health check respects an owner disconnect."""
        await connection.connect()
        await connection.disconnect()

        assert not await connection.probe()
        assert script.calls == 1

    @pytest.mark.asyncio
    async def test_health_check_restores_after_failed_connect(
        self, connection: ConnectionManager, script: ChannelScript
    ) -> None:
        """Test a client demoted at startup is restored by the health check."""
        script.fail_next()
        await connection.connect()
        assert connection.mode is TransportMode.FALLBACK_ONLY

        assert await connection.probe()
        assert connection.channel_available

    @pytest.mark.asyncio
    async def test_periodic_health_check_fires(self, script: ChannelScript) -> None:
        """Test the health check runs on its own interval."""
        manager = ConnectionManager(
            url="ws://test/ws",
            on_frame=lambda frame: None,
            connect_timeout=0.2,
            max_reconnect_attempts=0,
            health_check_interval=0.05,
            connector=script,
        )
        script.fail_next()

        try:
            await manager.connect()
            assert manager.mode is TransportMode.FALLBACK_ONLY

            await eventually(lambda: manager.is_connected)
            assert manager.mode is TransportMode.CHANNEL_PREFERRED
        finally:
            await manager.disconnect()
