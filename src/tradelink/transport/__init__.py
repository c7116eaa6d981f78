"""Transport layer: channel lifecycle, correlation, subscriptions and fallback."""

from tradelink.transport.connection import ConnectionManager, classify_close
from tradelink.transport.correlator import RequestCorrelator
from tradelink.transport.dispatcher import FallbackDispatcher, Operation
from tradelink.transport.http import HttpFallbackClient
from tradelink.transport.subscriptions import SubscriptionRegistry, topic_key


__all__ = [
    "ConnectionManager",
    "FallbackDispatcher",
    "HttpFallbackClient",
    "Operation",
    "RequestCorrelator",
    "SubscriptionRegistry",
    "classify_close",
    "topic_key",
]
