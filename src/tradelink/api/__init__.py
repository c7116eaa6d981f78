"""Public client API and trading service models."""

from tradelink.api.client import TradingClient
from tradelink.api.models import (
    ActiveSessionWithROI,
    AutoTradingStatus,
    Indicators,
    MarketAnalysis,
    PositionsCount,
    ServerInfo,
    TotalBalance,
    Trade,
    TradingSession,
)
from tradelink.api.topics import decode_broadcast


__all__ = [
    "ActiveSessionWithROI",
    "AutoTradingStatus",
    "Indicators",
    "MarketAnalysis",
    "PositionsCount",
    "ServerInfo",
    "TotalBalance",
    "Trade",
    "TradingClient",
    "TradingSession",
    "decode_broadcast",
]
