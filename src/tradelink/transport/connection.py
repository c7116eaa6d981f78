"""
Persistent channel connection manager.

Owns the WebSocket to the trading service with:
- Connect timeout with silent demotion to HTTP fallback
- Coalesced concurrent connects
- Bounded fixed-delay reconnection after network loss
- Periodic health check that can restore the channel
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

import aiohttp

from tradelink.config.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_HEALTH_CHECK_INTERVAL,
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_RECONNECT_DELAY,
    SERVER_INITIATED_CLOSE_CODES,
    WS_APP_CLOSE_CODE_MIN,
    WS_CLOSE_TIMEOUT,
    WS_HEARTBEAT_INTERVAL,
    WS_MAX_MESSAGE_SIZE,
)
from tradelink.core.errors import ConnectFailure, TransportUnavailableError
from tradelink.core.types import CloseReason, ConnectionState, ReconnectPolicy, TransportMode
from tradelink.telemetry.metrics import RECONNECT_ATTEMPTS, TransportMetrics


logger = logging.getLogger(__name__)


class ChannelSocket(Protocol):
    """The subset of ``aiohttp.ClientWebSocketResponse`` the manager uses."""

    @property
    def closed(self) -> bool: ...

    @property
    def close_code(self) -> int | None: ...

    async def send_str(self, data: str) -> None: ...

    async def receive(self) -> aiohttp.WSMessage: ...

    async def close(self) -> bool: ...


# Type aliases
Connector = Callable[[], Awaitable[ChannelSocket]]
FrameHandler = Callable[[str | bytes], None]
ConnectedHook = Callable[[], Awaitable[object]]
CloseHook = Callable[[CloseReason], None]


def classify_close(code: int | None) -> CloseReason:
    """
    Map a WebSocket close code to a close reason.

    Normal closure, policy violation and application codes (4000+) are
    deliberate server decisions; everything else is a network loss.
    """
    if code is None:
        return CloseReason.NETWORK_LOST
    if code in SERVER_INITIATED_CLOSE_CODES or code >= WS_APP_CLOSE_CODE_MIN:
        return CloseReason.SERVER_INITIATED
    return CloseReason.NETWORK_LOST


class ConnectionManager:
    """
    Lifecycle of the single persistent channel.

    ``connect()`` never raises for transport failures: it resolves with the
    client either connected or demoted to ``FALLBACK_ONLY``.
    """

    def __init__(
        self,
        url: str,
        on_frame: FrameHandler,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL,
        connector: Connector | None = None,
        metrics: TransportMetrics | None = None,
    ) -> None:
        """
        Initialize connection manager.

        Args:
            url: WebSocket URL of the channel.
            on_frame: Called synchronously with every inbound text frame.
            connect_timeout: Seconds allowed for the channel to open.
            reconnect_delay: Fixed delay between reconnection attempts.
            max_reconnect_attempts: Reconnection budget after a network loss.
            health_check_interval: Period of the health check.
            connector: Opens the socket. Defaults to ``aiohttp`` ``ws_connect``.
            metrics: Optional metrics collector.
        """
        self._url = url
        self._on_frame = on_frame
        self._connect_timeout = connect_timeout
        self._health_check_interval = health_check_interval
        self._connector = connector or self._open_websocket
        self._metrics = metrics or TransportMetrics()

        self._policy = ReconnectPolicy(max_attempts=max_reconnect_attempts, delay=reconnect_delay)
        self._state = ConnectionState.DISCONNECTED
        self._mode = TransportMode.CHANNEL_PREFERRED
        self._last_close_reason: CloseReason | None = None
        self._stopped = False

        self._ws: ChannelSocket | None = None
        self._session: aiohttp.ClientSession | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._health_task: asyncio.Task[None] | None = None

        self._connected_hooks: list[ConnectedHook] = []
        self._close_hooks: list[CloseHook] = []
        self._connect_count = 0

    # =========================================================================
    # Status
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @property
    def mode(self) -> TransportMode:
        """Get current transport preference."""
        return self._mode

    @property
    def is_connected(self) -> bool:
        """Check if the channel is open."""
        return self._state is ConnectionState.CONNECTED and self._ws is not None

    @property
    def channel_available(self) -> bool:
        """Check if requests may use the channel."""
        return self.is_connected and self._mode is TransportMode.CHANNEL_PREFERRED

    @property
    def reconnect_attempts(self) -> int:
        """Attempts made by the current reconnection cycle."""
        return self._policy.attempt

    @property
    def reconnect_policy(self) -> ReconnectPolicy:
        """Get the reconnection policy."""
        return self._policy

    @property
    def last_close_reason(self) -> CloseReason | None:
        """Reason of the most recent channel close."""
        return self._last_close_reason

    @property
    def connect_count(self) -> int:
        """Number of channel open attempts made."""
        return self._connect_count

    def add_connected_hook(self, hook: ConnectedHook) -> None:
        """Run ``hook`` after every successful connect."""
        self._connected_hooks.append(hook)

    def add_close_hook(self, hook: CloseHook) -> None:
        """Call ``hook`` with the reason whenever the channel closes."""
        self._close_hooks.append(hook)

    def demote(self, reason: str) -> None:
        """Switch to ``FALLBACK_ONLY``."""
        if self._mode is not TransportMode.FALLBACK_ONLY:
            logger.warning(f"Switching to HTTP fallback: {reason}")
        self._mode = TransportMode.FALLBACK_ONLY

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def _open_websocket(self) -> aiohttp.ClientWebSocketResponse:
        """Open the channel with ``aiohttp``."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()

        return await self._session.ws_connect(
            self._url,
            heartbeat=WS_HEARTBEAT_INTERVAL,
            max_msg_size=WS_MAX_MESSAGE_SIZE,
        )

    async def connect(self) -> None:
        """
        Establish the channel.

        Resolves immediately when already connected. A call made while a
        connect is in flight waits for that attempt instead of opening a
        second channel.
        """
        if self._state is ConnectionState.CONNECTED:
            return

        self._stopped = False
        self._ensure_health_check()

        if self._connect_task is None or self._connect_task.done():
            self._connect_task = asyncio.create_task(self._open())

        # wait() leaves the shared attempt running if this caller is cancelled
        await asyncio.wait({self._connect_task})

    async def _open(self) -> None:
        """Single channel open attempt raced against the connect timeout."""
        self._state = ConnectionState.CONNECTING
        self._connect_count += 1
        logger.info(f"Connecting to {self._url}")

        try:
            ws = await asyncio.wait_for(self._connector(), timeout=self._connect_timeout)
        except TimeoutError:
            self._absorb(ConnectFailure(f"no handshake within {self._connect_timeout:.1f}s"))
            return
        except Exception as e:
            self._absorb(ConnectFailure(f"open failed: {e}"))
            return

        self._ws = ws
        self._state = ConnectionState.CONNECTED
        self._mode = TransportMode.CHANNEL_PREFERRED
        self._last_close_reason = None
        self._policy.reset()
        self._reader_task = asyncio.create_task(self._read_loop(ws))
        logger.info("Channel connected")

        for hook in self._connected_hooks:
            try:
                await hook()
            except Exception as e:
                logger.error(f"Connected hook error: {e}")

    def _absorb(self, failure: ConnectFailure) -> None:
        """Fold a failed open into a demotion."""
        logger.error(f"Channel connection failed: {failure}")
        self._ws = None
        self._state = ConnectionState.DISCONNECTED
        self.demote(failure.message)

    async def disconnect(self) -> None:
        """Close the channel and cancel every background task."""
        self._stopped = True
        current = asyncio.current_task()

        tasks = [
            task
            for task in (
                self._connect_task,
                self._reconnect_task,
                self._health_task,
                self._reader_task,
            )
            if task is not None and not task.done() and task is not current
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks, timeout=WS_CLOSE_TIMEOUT)

        self._connect_task = None
        self._reconnect_task = None
        self._health_task = None
        self._reader_task = None

        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()

        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

        was_connected = self._state is ConnectionState.CONNECTED
        self._state = ConnectionState.DISCONNECTED

        if was_connected:
            logger.info("Channel disconnected")
            self._closed(CloseReason.CLIENT_REQUESTED)

    # =========================================================================
    # Messaging
    # =========================================================================

    async def send(self, frame: str) -> None:
        """
        Write a text frame.

        Raises:
            TransportUnavailableError: If the channel is down or the write fails.
        """
        ws = self._ws
        if ws is None or self._state is not ConnectionState.CONNECTED:
            raise TransportUnavailableError("Channel not connected")

        try:
            await ws.send_str(frame)
        except (OSError, aiohttp.ClientError, RuntimeError) as e:
            raise TransportUnavailableError(f"Channel write failed: {e}") from e

    async def _read_loop(self, ws: ChannelSocket) -> None:
        """Deliver inbound frames until the channel closes."""
        reason = CloseReason.NETWORK_LOST

        try:
            while True:
                msg = await ws.receive()

                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    try:
                        self._on_frame(msg.data)
                    except Exception as e:
                        logger.error(f"Frame handler error: {e}")

                elif msg.type == aiohttp.WSMsgType.CLOSE:
                    reason = classify_close(msg.data)
                    break

                elif msg.type in (aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                    reason = classify_close(ws.close_code)
                    break

                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"Channel error: {msg.data}")
                    break

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in channel read loop: {e}")

        if not ws.closed:
            await ws.close()

        # A newer socket may already have replaced this one
        if self._ws is ws:
            self._ws = None
            self._state = ConnectionState.DISCONNECTED
            self._on_unexpected_close(reason)

    def _closed(self, reason: CloseReason) -> None:
        """Record a close and notify hooks."""
        self._last_close_reason = reason
        for hook in self._close_hooks:
            try:
                hook(reason)
            except Exception as e:
                logger.error(f"Close hook error: {e}")

    def _on_unexpected_close(self, reason: CloseReason) -> None:
        """React to a close the owner did not ask for."""
        logger.warning(f"Channel closed: {reason.value}")
        self._closed(reason)

        if reason is CloseReason.SERVER_INITIATED:
            self.demote("server closed the channel")
        else:
            self._schedule_reconnect()

    # =========================================================================
    # Reconnection
    # =========================================================================

    def _schedule_reconnect(self) -> None:
        """Start the bounded reconnection cycle unless one is running."""
        if self._stopped:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        """Fixed-delay reconnection bounded by the policy."""
        while not self._policy.exhausted:
            self._policy.attempt += 1
            self._metrics.increment_counter(RECONNECT_ATTEMPTS)
            logger.info(
                f"Reconnect attempt {self._policy.attempt}/{self._policy.max_attempts} "
                f"in {self._policy.delay:.1f}s"
            )
            await asyncio.sleep(self._policy.delay)

            await self.connect()
            if self.is_connected:
                return

        logger.error("Max reconnect attempts reached")
        self.demote("reconnect attempts exhausted")

    # =========================================================================
    # Health Check
    # =========================================================================

    def _ensure_health_check(self) -> None:
        """Start the periodic health check if it is not running."""
        if self._health_task is None or self._health_task.done():
            self._health_task = asyncio.create_task(self._health_check_loop())

    async def _health_check_loop(self) -> None:
        """Probe the channel every ``health_check_interval`` seconds."""
        while True:
            await asyncio.sleep(self._health_check_interval)
            try:
                await self.probe()
            except Exception as e:
                logger.error(f"Health check error: {e}")

    async def probe(self) -> bool:
        """
        Run one health check.

        Reconnects when the channel is down, unless the owner disconnected,
        the server severed the channel, or a reconnection cycle is running.

        The check runs in both transport modes. A client demoted by a failed
        connect, exhausted reconnects or a failed request is probed too, and
        a successful connect puts it back on ``CHANNEL_PREFERRED``. Only a
        server-initiated close stops probing until ``connect()`` is called.

        Returns:
            True if a connect was attempted.
        """
        if self._stopped or self._state is not ConnectionState.DISCONNECTED:
            return False
        if self._last_close_reason is CloseReason.SERVER_INITIATED:
            return False
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return False

        logger.info("Health check: channel down, reconnecting")
        await self.connect()
        return True
