"""
Resilient dual-transport trading client.

An asynchronous client for a trading service that prefers a persistent
WebSocket channel for requests and live broadcasts, and falls back to the
stateless REST API whenever the channel is unavailable.
"""

__version__ = "1.0.0"

from tradelink.api.client import TradingClient
from tradelink.config.settings import Settings, get_settings


__all__ = [
    "Settings",
    "TradingClient",
    "__version__",
    "get_settings",
]
