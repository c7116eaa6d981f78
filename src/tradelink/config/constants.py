"""
Client constants and default configuration values.

This module contains all hardcoded values used throughout the client.
Values are organized by category for easy maintenance and auditing.
"""

from typing import Final


# =============================================================================
# Service Endpoints
# =============================================================================

DEFAULT_API_BASE_URL: Final[str] = "http://localhost:3007"
DEFAULT_WS_URL: Final[str] = "ws://localhost:3007/ws"

# REST endpoints (stateless fallback path)
ENDPOINT_SESSIONS: Final[str] = "/trading/sessions"
ENDPOINT_SESSION: Final[str] = "/trading/session/{session_id}"
ENDPOINT_SESSION_STATUS: Final[str] = "/trading/session/{symbol}/status"
ENDPOINT_SESSION_TRADES: Final[str] = "/trading/session/{session_id}/trades"
ENDPOINT_SESSION_INITIALIZE: Final[str] = "/trading/session/initialize"
ENDPOINT_SESSION_ANALYZE: Final[str] = "/trading/session/{symbol}/analyze"
ENDPOINT_VOLATILITY_CHECK: Final[str] = "/trading/session/{session_id}/volatility-check"
ENDPOINT_MARKET_ANALYSIS: Final[str] = "/trading/market/analysis/{symbol}"
ENDPOINT_MARKET_ANALYSIS_BATCH: Final[str] = "/trading/market/analysis-batch"
ENDPOINT_TOTAL_BALANCE: Final[str] = "/trading/total-balance"
ENDPOINT_AVAILABLE_SYMBOLS: Final[str] = "/trading/available-symbols"
ENDPOINT_ACTIVE_SESSIONS_ROI: Final[str] = "/trading/active-sessions-roi"
ENDPOINT_ACTIVE_POSITIONS_COUNT: Final[str] = "/trading/active-positions-count"
ENDPOINT_SERVER_INFO: Final[str] = "/trading/server-info"
ENDPOINT_AUTO_TRADING_START: Final[str] = "/trading/auto-trading/start"
ENDPOINT_AUTO_TRADING_STOP: Final[str] = "/trading/auto-trading/stop"
ENDPOINT_AUTO_TRADING_STATUS: Final[str] = "/trading/auto-trading/status"
ENDPOINT_AUTO_TRADING_INTERVAL: Final[str] = "/trading/auto-trading/interval"


# =============================================================================
# Channel Methods
# =============================================================================

METHOD_GET_ALL_SESSIONS: Final[str] = "getAllSessions"
METHOD_GET_SESSION_STATUS: Final[str] = "getSessionStatus"
METHOD_GET_SESSION_TRADES: Final[str] = "getSessionTrades"
METHOD_GET_MARKET_ANALYSIS: Final[str] = "getMarketAnalysis"
METHOD_GET_MARKET_ANALYSIS_BATCH: Final[str] = "getMarketAnalysisBatch"
METHOD_GET_TOTAL_BALANCE: Final[str] = "getTotalBalance"
METHOD_GET_AVAILABLE_SYMBOLS: Final[str] = "getAvailableSymbols"
METHOD_INITIALIZE_SESSION: Final[str] = "initializeSession"
METHOD_CLOSE_SESSION: Final[str] = "closeSession"
METHOD_ANALYZE_AND_TRADE: Final[str] = "analyzeAndTrade"
METHOD_UPDATE_VOLATILITY_CHECK: Final[str] = "updateVolatilityCheck"
METHOD_GET_ACTIVE_SESSIONS_ROI: Final[str] = "getActiveSessionsWithROI"
METHOD_GET_ACTIVE_POSITIONS_COUNT: Final[str] = "getActivePositionsCount"
METHOD_GET_SERVER_INFO: Final[str] = "getServerInfo"
METHOD_START_AUTO_TRADING: Final[str] = "startAutoTrading"
METHOD_STOP_AUTO_TRADING: Final[str] = "stopAutoTrading"
METHOD_GET_AUTO_TRADING_STATUS: Final[str] = "getAutoTradingStatus"
METHOD_UPDATE_AUTO_TRADING_INTERVAL: Final[str] = "updateAutoTradingInterval"


# =============================================================================
# Broadcast Topics
# =============================================================================

TOPIC_SESSIONS: Final[str] = "sessions"
TOPIC_TRADES: Final[str] = "trades"
TOPIC_MARKET_ANALYSIS: Final[str] = "market_analysis"
TOPIC_BALANCE: Final[str] = "balance"

# Control message types
CONTROL_SUBSCRIBE: Final[str] = "subscribe"
CONTROL_UNSUBSCRIBE: Final[str] = "unsubscribe"


# =============================================================================
# Timeouts
# =============================================================================

DEFAULT_CONNECT_TIMEOUT: Final[float] = 5.0  # seconds
DEFAULT_REQUEST_TIMEOUT: Final[float] = 30.0  # seconds
DEFAULT_HTTP_TIMEOUT: Final[float] = 30.0  # seconds
WS_CLOSE_TIMEOUT: Final[float] = 5.0  # seconds


# =============================================================================
# Reconnection Strategy
# =============================================================================

DEFAULT_RECONNECT_DELAY: Final[float] = 5.0  # seconds, fixed between attempts
DEFAULT_MAX_RECONNECT_ATTEMPTS: Final[int] = 5
DEFAULT_HEALTH_CHECK_INTERVAL: Final[float] = 30.0  # seconds


# =============================================================================
# WebSocket Configuration
# =============================================================================

WS_HEARTBEAT_INTERVAL: Final[float] = 20.0  # seconds
WS_MAX_MESSAGE_SIZE: Final[int] = 10 * 1024 * 1024  # 10MB

# Close codes the server sends when it severs the channel on purpose.
# Anything else (1001, 1006, 1011, a dropped socket) counts as a network loss.
WS_CLOSE_NORMAL: Final[int] = 1000
WS_CLOSE_POLICY_VIOLATION: Final[int] = 1008
WS_APP_CLOSE_CODE_MIN: Final[int] = 4000
SERVER_INITIATED_CLOSE_CODES: Final[frozenset[int]] = frozenset(
    {
        WS_CLOSE_NORMAL,
        WS_CLOSE_POLICY_VIOLATION,
    }
)

# Request id suffix length (base-36 characters)
REQUEST_ID_SUFFIX_LENGTH: Final[int] = 9


# =============================================================================
# Logging & Telemetry
# =============================================================================

LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Maximum log queue size
MAX_LOG_QUEUE_SIZE: Final[int] = 10_000

# Number of round-trip samples kept per transport
LATENCY_WINDOW_SIZE: Final[int] = 500
