"""
Catalogue of trading service operations.

Each entry pairs a channel method with its REST equivalent and the type
its result is validated against. Both transports yield the same Python
shape for the same operation.
"""

from typing import Any

from pydantic import TypeAdapter, ValidationError

from tradelink.api.models import (
    ActiveSessionWithROI,
    AutoTradingStatus,
    MarketAnalysis,
    PositionsCount,
    ServerInfo,
    TotalBalance,
    Trade,
    TradingSession,
)
from tradelink.config.constants import (
    ENDPOINT_ACTIVE_POSITIONS_COUNT,
    ENDPOINT_ACTIVE_SESSIONS_ROI,
    ENDPOINT_AUTO_TRADING_INTERVAL,
    ENDPOINT_AUTO_TRADING_START,
    ENDPOINT_AUTO_TRADING_STATUS,
    ENDPOINT_AUTO_TRADING_STOP,
    ENDPOINT_AVAILABLE_SYMBOLS,
    ENDPOINT_MARKET_ANALYSIS,
    ENDPOINT_MARKET_ANALYSIS_BATCH,
    ENDPOINT_SERVER_INFO,
    ENDPOINT_SESSION,
    ENDPOINT_SESSION_ANALYZE,
    ENDPOINT_SESSION_INITIALIZE,
    ENDPOINT_SESSION_STATUS,
    ENDPOINT_SESSION_TRADES,
    ENDPOINT_SESSIONS,
    ENDPOINT_TOTAL_BALANCE,
    ENDPOINT_VOLATILITY_CHECK,
    METHOD_ANALYZE_AND_TRADE,
    METHOD_CLOSE_SESSION,
    METHOD_GET_ACTIVE_POSITIONS_COUNT,
    METHOD_GET_ACTIVE_SESSIONS_ROI,
    METHOD_GET_ALL_SESSIONS,
    METHOD_GET_AUTO_TRADING_STATUS,
    METHOD_GET_AVAILABLE_SYMBOLS,
    METHOD_GET_MARKET_ANALYSIS,
    METHOD_GET_MARKET_ANALYSIS_BATCH,
    METHOD_GET_SERVER_INFO,
    METHOD_GET_SESSION_STATUS,
    METHOD_GET_SESSION_TRADES,
    METHOD_GET_TOTAL_BALANCE,
    METHOD_INITIALIZE_SESSION,
    METHOD_START_AUTO_TRADING,
    METHOD_STOP_AUTO_TRADING,
    METHOD_UPDATE_AUTO_TRADING_INTERVAL,
    METHOD_UPDATE_VOLATILITY_CHECK,
)
from tradelink.core.errors import ProtocolError
from tradelink.transport.dispatcher import Operation


# =============================================================================
# Result Normalizers
# =============================================================================


def normalize_analysis_batch(data: Any) -> list[Any]:
    """
    Reduce every known batch analysis shape to a list of per-symbol lists.

    Accepted shapes:
        [[...], [...]]                          list of lists
        [{"analysis": [...]}, ...]              list of wrappers
        {"results": [{"analysis": [...]}, ...]} results envelope

    An item without an analysis list (a failed symbol) becomes ``[]``.

    Raises:
        ProtocolError: For any other top-level shape.
    """
    if isinstance(data, dict) and isinstance(data.get("results"), list):
        items = data["results"]
    elif isinstance(data, list):
        items = data
    else:
        raise ProtocolError(f"Unexpected batch analysis shape: {type(data).__name__}")

    batch: list[Any] = []
    for item in items:
        if isinstance(item, list):
            batch.append(item)
        elif isinstance(item, dict) and isinstance(item.get("analysis"), list):
            batch.append(item["analysis"])
        else:
            batch.append([])
    return batch


def positions_count(data: Any) -> Any:
    """Unwrap ``{"count": n}``."""
    try:
        return PositionsCount.model_validate(data).count
    except ValidationError as e:
        raise ProtocolError(f"Unexpected positions count shape: {type(data).__name__}") from e


# =============================================================================
# Operations
# =============================================================================

_SESSION = TypeAdapter(TradingSession)
_SESSIONS = TypeAdapter(list[TradingSession])
_TRADES = TypeAdapter(list[Trade])
_ANALYSIS = TypeAdapter(list[MarketAnalysis])
_ANALYSIS_BATCH = TypeAdapter(list[list[MarketAnalysis]])
_BALANCE = TypeAdapter(TotalBalance)
_SYMBOLS = TypeAdapter(list[str])
_ROI = TypeAdapter(list[ActiveSessionWithROI])
_COUNT = TypeAdapter(int)
_SERVER_INFO = TypeAdapter(ServerInfo)
_AUTO_TRADING_STATUS = TypeAdapter(AutoTradingStatus)
_ANY = TypeAdapter(Any)


GET_ALL_SESSIONS = Operation(
    method=METHOD_GET_ALL_SESSIONS,
    http_method="GET",
    path=ENDPOINT_SESSIONS,
    result=_SESSIONS,
    error_message="Failed to load sessions",
)

GET_SESSION_STATUS = Operation(
    method=METHOD_GET_SESSION_STATUS,
    http_method="GET",
    path=ENDPOINT_SESSION_STATUS,
    result=_SESSION,
    error_message="Failed to load session status",
)

GET_SESSION_TRADES = Operation(
    method=METHOD_GET_SESSION_TRADES,
    http_method="GET",
    path=ENDPOINT_SESSION_TRADES,
    result=_TRADES,
    error_message="Failed to load session trades",
)

GET_MARKET_ANALYSIS = Operation(
    method=METHOD_GET_MARKET_ANALYSIS,
    http_method="GET",
    path=ENDPOINT_MARKET_ANALYSIS,
    result=_ANALYSIS,
    error_message="Failed to load market analysis",
)

GET_MARKET_ANALYSIS_BATCH = Operation(
    method=METHOD_GET_MARKET_ANALYSIS_BATCH,
    http_method="GET",
    path=ENDPOINT_MARKET_ANALYSIS_BATCH,
    result=_ANALYSIS_BATCH,
    error_message="Failed to load batch market analysis",
    channel_normalize=normalize_analysis_batch,
    http_normalize=normalize_analysis_batch,
)

GET_TOTAL_BALANCE = Operation(
    method=METHOD_GET_TOTAL_BALANCE,
    http_method="GET",
    path=ENDPOINT_TOTAL_BALANCE,
    result=_BALANCE,
    error_message="Failed to load total balance",
)

GET_AVAILABLE_SYMBOLS = Operation(
    method=METHOD_GET_AVAILABLE_SYMBOLS,
    http_method="GET",
    path=ENDPOINT_AVAILABLE_SYMBOLS,
    result=_SYMBOLS,
    error_message="Failed to load available symbols",
)

INITIALIZE_SESSION = Operation(
    method=METHOD_INITIALIZE_SESSION,
    http_method="POST",
    path=ENDPOINT_SESSION_INITIALIZE,
    result=_SESSION,
    error_message="Failed to initialize session",
    idempotent=False,
)

CLOSE_SESSION = Operation(
    method=METHOD_CLOSE_SESSION,
    http_method="DELETE",
    path=ENDPOINT_SESSION,
    result=_ANY,
    error_message="Failed to close session",
    idempotent=False,
)

ANALYZE_AND_TRADE = Operation(
    method=METHOD_ANALYZE_AND_TRADE,
    http_method="POST",
    path=ENDPOINT_SESSION_ANALYZE,
    result=_ANY,
    error_message="Failed to analyze and trade",
    idempotent=False,
)

UPDATE_VOLATILITY_CHECK = Operation(
    method=METHOD_UPDATE_VOLATILITY_CHECK,
    http_method="POST",
    path=ENDPOINT_VOLATILITY_CHECK,
    result=_ANY,
    error_message="Failed to update volatility settings",
    idempotent=False,
)

GET_ACTIVE_SESSIONS_WITH_ROI = Operation(
    method=METHOD_GET_ACTIVE_SESSIONS_ROI,
    http_method="GET",
    path=ENDPOINT_ACTIVE_SESSIONS_ROI,
    result=_ROI,
    error_message="Failed to load active sessions",
)

GET_ACTIVE_POSITIONS_COUNT = Operation(
    method=METHOD_GET_ACTIVE_POSITIONS_COUNT,
    http_method="GET",
    path=ENDPOINT_ACTIVE_POSITIONS_COUNT,
    result=_COUNT,
    error_message="Failed to load active positions count",
    channel_normalize=positions_count,
    http_normalize=positions_count,
)

GET_SERVER_INFO = Operation(
    method=METHOD_GET_SERVER_INFO,
    http_method="GET",
    path=ENDPOINT_SERVER_INFO,
    result=_SERVER_INFO,
    error_message="Failed to load server info",
)

START_AUTO_TRADING = Operation(
    method=METHOD_START_AUTO_TRADING,
    http_method="POST",
    path=ENDPOINT_AUTO_TRADING_START,
    result=_ANY,
    error_message="Failed to start auto trading",
    idempotent=False,
)

STOP_AUTO_TRADING = Operation(
    method=METHOD_STOP_AUTO_TRADING,
    http_method="POST",
    path=ENDPOINT_AUTO_TRADING_STOP,
    result=_ANY,
    error_message="Failed to stop auto trading",
    idempotent=False,
)

GET_AUTO_TRADING_STATUS = Operation(
    method=METHOD_GET_AUTO_TRADING_STATUS,
    http_method="GET",
    path=ENDPOINT_AUTO_TRADING_STATUS,
    result=_AUTO_TRADING_STATUS,
    error_message="Failed to load auto trading status",
)

UPDATE_AUTO_TRADING_INTERVAL = Operation(
    method=METHOD_UPDATE_AUTO_TRADING_INTERVAL,
    http_method="POST",
    path=ENDPOINT_AUTO_TRADING_INTERVAL,
    result=_ANY,
    error_message="Failed to update auto trading interval",
    idempotent=False,
)


ALL_OPERATIONS: tuple[Operation[Any], ...] = (
    GET_ALL_SESSIONS,
    GET_SESSION_STATUS,
    GET_SESSION_TRADES,
    GET_MARKET_ANALYSIS,
    GET_MARKET_ANALYSIS_BATCH,
    GET_TOTAL_BALANCE,
    GET_AVAILABLE_SYMBOLS,
    INITIALIZE_SESSION,
    CLOSE_SESSION,
    ANALYZE_AND_TRADE,
    UPDATE_VOLATILITY_CHECK,
    GET_ACTIVE_SESSIONS_WITH_ROI,
    GET_ACTIVE_POSITIONS_COUNT,
    GET_SERVER_INFO,
    START_AUTO_TRADING,
    STOP_AUTO_TRADING,
    GET_AUTO_TRADING_STATUS,
    UPDATE_AUTO_TRADING_INTERVAL,
)
