"""
Trading service client.

Single entry point for dashboards and scripts. Every operation prefers the
persistent channel and falls back to the REST API without the caller
noticing; broadcasts are delivered to listeners registered with ``on``.
"""

import logging
from typing import Any

from tradelink.api import operations as ops
from tradelink.api.models import (
    ActiveSessionWithROI,
    AutoTradingStatus,
    MarketAnalysis,
    ServerInfo,
    TotalBalance,
    Trade,
    TradingSession,
)
from tradelink.api.topics import decode_broadcast
from tradelink.config.constants import (
    TOPIC_BALANCE,
    TOPIC_MARKET_ANALYSIS,
    TOPIC_SESSIONS,
    TOPIC_TRADES,
)
from tradelink.config.settings import Settings, get_settings
from tradelink.core.errors import ProtocolError
from tradelink.core.event_bus import BroadcastBus, BroadcastListener
from tradelink.core.types import CloseReason, ConnectionStatus, TransportMode
from tradelink.telemetry.metrics import DROPPED_FRAMES, TransportMetrics
from tradelink.transport.connection import ConnectionManager, Connector
from tradelink.transport.correlator import RequestCorrelator
from tradelink.transport.dispatcher import FallbackDispatcher
from tradelink.transport.http import HttpFallbackClient
from tradelink.transport.protocol import ResponseMessage, decode
from tradelink.transport.subscriptions import SubscriptionRegistry


logger = logging.getLogger(__name__)


class TradingClient:
    """
    Dual-transport client for the trading service.

    Usage:
        async with TradingClient() as client:
            sessions = await client.get_all_sessions()
            client.on("sessions", lambda b: print(b.payload))
            await client.subscribe_to_sessions()

    Each instance owns its channel, pending requests and subscriptions.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        connector: Connector | None = None,
        http: HttpFallbackClient | None = None,
    ) -> None:
        """
        Initialize the client. No I/O happens until ``connect``.

        Args:
            settings: Client settings. Defaults to ``get_settings()``.
            connector: Opens the channel socket; overridden in tests.
            http: REST client; overridden in tests.
        """
        self._settings = settings or get_settings()
        self._metrics = TransportMetrics()
        self._bus = BroadcastBus(decoder=decode_broadcast)

        self._connection = ConnectionManager(
            url=self._settings.ws_url,
            on_frame=self._route_frame,
            connect_timeout=self._settings.connect_timeout,
            reconnect_delay=self._settings.reconnect_delay,
            max_reconnect_attempts=self._settings.max_reconnect_attempts,
            health_check_interval=self._settings.health_check_interval,
            connector=connector,
            metrics=self._metrics,
        )
        self._correlator = RequestCorrelator(
            self._connection,
            timeout=self._settings.request_timeout,
            metrics=self._metrics,
        )
        self._registry = SubscriptionRegistry(self._connection, self._bus, self._metrics)
        self._http = http or HttpFallbackClient(
            self._settings.api_base_url,
            timeout=self._settings.http_timeout,
            metrics=self._metrics,
        )
        self._dispatcher = FallbackDispatcher(
            self._connection, self._correlator, self._http, self._metrics
        )

        self._connection.add_close_hook(self._on_channel_closed)
        if self._settings.resubscribe_on_reconnect:
            self._connection.add_connected_hook(self._registry.resubscribe)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """
        Open the channel.

        Never raises for transport failures: on timeout or error the client
        is left in HTTP fallback mode and every call still works.
        """
        await self._connection.connect()

    async def disconnect(self) -> None:
        """Close the channel, stop background tasks and release the HTTP pool."""
        await self._connection.disconnect()
        await self._http.close()

    async def __aenter__(self) -> "TradingClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.disconnect()

    def _on_channel_closed(self, reason: CloseReason) -> None:
        """Fail in-flight requests; their callers fall back to HTTP."""
        self._correlator.fail_all(f"Channel closed ({reason.value})")

    def _route_frame(self, raw: str | bytes) -> None:
        """Hand an inbound frame to the correlator or the registry."""
        try:
            message = decode(raw)
        except ProtocolError as e:
            self._metrics.increment_counter(DROPPED_FRAMES)
            logger.debug(f"Dropping frame: {e}")
            return

        if isinstance(message, ResponseMessage):
            self._correlator.resolve(message)
        else:
            self._registry.dispatch(message)

    # =========================================================================
    # Status
    # =========================================================================

    def get_connection_status(self) -> ConnectionStatus:
        """Snapshot of the transport state."""
        return ConnectionStatus(
            connected=self._connection.is_connected,
            using_channel=self._connection.mode is TransportMode.CHANNEL_PREFERRED,
            reconnect_attempts=self._connection.reconnect_attempts,
            subscription_count=len(self._registry),
            topics=self._registry.topics,
        )

    @property
    def settings(self) -> Settings:
        """Get client settings."""
        return self._settings

    @property
    def metrics(self) -> TransportMetrics:
        """Get transport metrics."""
        return self._metrics

    @property
    def connection(self) -> ConnectionManager:
        """Get the channel connection manager."""
        return self._connection

    # =========================================================================
    # Sessions
    # =========================================================================

    async def get_all_sessions(self) -> list[TradingSession]:
        """Get every trading session."""
        return await self._dispatcher.call(ops.GET_ALL_SESSIONS)

    async def get_session_status(self, symbol: str) -> TradingSession:
        """Get the session trading ``symbol``."""
        return await self._dispatcher.call(
            ops.GET_SESSION_STATUS,
            {"symbol": symbol},
            path_params={"symbol": symbol},
        )

    async def get_session_trades(self, session_id: str) -> list[Trade]:
        """Get the trades recorded for a session."""
        return await self._dispatcher.call(
            ops.GET_SESSION_TRADES,
            {"sessionId": session_id},
            path_params={"session_id": session_id},
        )

    async def initialize_session(
        self,
        symbol: str,
        initial_balance: float,
        reserve_balance: float,
    ) -> TradingSession:
        """
        Start a trading session.

        Args:
            symbol: Trading pair (e.g. ``BTCUSDT``).
            initial_balance: Total balance committed to the session.
            reserve_balance: Part of the balance held back for averaging.

        Returns:
            The created session.
        """
        params = {
            "symbol": symbol,
            "initialBalance": initial_balance,
            "reserveBalance": reserve_balance,
        }
        return await self._dispatcher.call(ops.INITIALIZE_SESSION, params, body=params)

    async def close_session(self, session_id: str) -> None:
        """Close a session."""
        await self._dispatcher.call(
            ops.CLOSE_SESSION,
            {"sessionId": session_id},
            path_params={"session_id": session_id},
        )

    async def analyze_and_trade(self, symbol: str) -> None:
        """Run one analysis and trading pass for ``symbol``."""
        await self._dispatcher.call(
            ops.ANALYZE_AND_TRADE,
            {"symbol": symbol},
            path_params={"symbol": symbol},
        )

    async def update_volatility_check(self, session_id: str, enabled: bool) -> None:
        """Enable or disable the volatility filter of a session."""
        await self._dispatcher.call(
            ops.UPDATE_VOLATILITY_CHECK,
            {"sessionId": session_id, "enableVolatilityCheck": enabled},
            path_params={"session_id": session_id},
            body={"enabled": enabled},
        )

    async def get_active_sessions_with_roi(self) -> list[ActiveSessionWithROI]:
        """Get active sessions with their live return figures."""
        return await self._dispatcher.call(ops.GET_ACTIVE_SESSIONS_WITH_ROI)

    async def get_active_positions_count(self) -> int:
        """Get the number of open positions."""
        return await self._dispatcher.call(ops.GET_ACTIVE_POSITIONS_COUNT)

    # =========================================================================
    # Market Data
    # =========================================================================

    async def get_market_analysis(self, symbol: str) -> list[MarketAnalysis]:
        """Get the per-timeframe analysis of ``symbol``."""
        return await self._dispatcher.call(
            ops.GET_MARKET_ANALYSIS,
            {"symbol": symbol},
            path_params={"symbol": symbol},
        )

    async def get_market_analysis_batch(self, symbols: list[str]) -> list[list[MarketAnalysis]]:
        """
        Get analyses for several symbols in one call.

        Returns:
            One list per requested symbol, in request order. A symbol the
            service could not analyze yields an empty list.
        """
        return await self._dispatcher.call(
            ops.GET_MARKET_ANALYSIS_BATCH,
            {"symbols": list(symbols)},
            query={"symbols": ",".join(symbols)},
        )

    async def get_total_balance(self) -> TotalBalance:
        """Get the aggregate account balance."""
        return await self._dispatcher.call(ops.GET_TOTAL_BALANCE)

    async def get_available_symbols(self) -> list[str]:
        """Get the symbols the service can trade."""
        return await self._dispatcher.call(ops.GET_AVAILABLE_SYMBOLS)

    async def get_server_info(self) -> ServerInfo:
        """Get diagnostic information about the service."""
        return await self._dispatcher.call(ops.GET_SERVER_INFO)

    # =========================================================================
    # Auto Trading
    # =========================================================================

    async def start_auto_trading(self, interval_ms: int | None = None) -> Any:
        """Start the periodic analysis loop."""
        params = {"intervalMs": interval_ms} if interval_ms is not None else None
        return await self._dispatcher.call(ops.START_AUTO_TRADING, params, body=params)

    async def stop_auto_trading(self) -> Any:
        """Stop the periodic analysis loop."""
        return await self._dispatcher.call(ops.STOP_AUTO_TRADING)

    async def get_auto_trading_status(self) -> AutoTradingStatus:
        """Get the state of the periodic analysis loop."""
        return await self._dispatcher.call(ops.GET_AUTO_TRADING_STATUS)

    async def update_auto_trading_interval(self, interval_ms: int) -> Any:
        """Change the period of the analysis loop."""
        params = {"intervalMs": interval_ms}
        return await self._dispatcher.call(
            ops.UPDATE_AUTO_TRADING_INTERVAL, params, body=params
        )

    # =========================================================================
    # Broadcasts
    # =========================================================================

    def on(self, topic: str, listener: BroadcastListener) -> None:
        """
        Register a broadcast listener.

        Args:
            topic: Topic key (``sessions``, ``balance``, ``trades_<id>``,
                ``market_analysis_<symbol>``).
            listener: Called with each ``Broadcast``; exceptions are logged.
        """
        self._registry.on(topic, listener)

    def off(self, topic: str, listener: BroadcastListener) -> bool:
        """Remove a broadcast listener."""
        return self._registry.off(topic, listener)

    async def subscribe_to_sessions(self) -> bool:
        """Ask for ``sessions`` broadcasts. False when the channel is down."""
        return await self._registry.subscribe(TOPIC_SESSIONS)

    async def unsubscribe_from_sessions(self) -> bool:
        """Stop ``sessions`` broadcasts."""
        return await self._registry.unsubscribe(TOPIC_SESSIONS)

    async def subscribe_to_trades(self, session_id: str) -> bool:
        """Ask for ``trades_<session_id>`` broadcasts."""
        return await self._registry.subscribe(TOPIC_TRADES, sessionId=session_id)

    async def unsubscribe_from_trades(self, session_id: str) -> bool:
        """Stop ``trades_<session_id>`` broadcasts."""
        return await self._registry.unsubscribe(TOPIC_TRADES, sessionId=session_id)

    async def subscribe_to_market_analysis(self, symbol: str) -> bool:
        """Ask for ``market_analysis_<symbol>`` broadcasts."""
        return await self._registry.subscribe(TOPIC_MARKET_ANALYSIS, symbol=symbol)

    async def unsubscribe_from_market_analysis(self, symbol: str) -> bool:
        """Stop ``market_analysis_<symbol>`` broadcasts."""
        return await self._registry.unsubscribe(TOPIC_MARKET_ANALYSIS, symbol=symbol)

    async def subscribe_to_balance(self) -> bool:
        """Ask for ``balance`` broadcasts."""
        return await self._registry.subscribe(TOPIC_BALANCE)

    async def unsubscribe_from_balance(self) -> bool:
        """Stop ``balance`` broadcasts."""
        return await self._registry.unsubscribe(TOPIC_BALANCE)
