"""Core module containing the broadcast bus, error taxonomy, and type definitions."""

from tradelink.core.errors import (
    BroadcastDecodeError,
    ConnectFailure,
    FallbackHttpError,
    ProtocolError,
    RequestTimeoutError,
    ServerRejectedError,
    TradeLinkError,
    TransportUnavailableError,
)
from tradelink.core.event_bus import Broadcast, BroadcastBus
from tradelink.core.types import (
    CloseReason,
    ConnectionState,
    ConnectionStatus,
    PendingRequest,
    ReconnectPolicy,
    TransportMode,
)


__all__ = [
    "Broadcast",
    "BroadcastBus",
    "BroadcastDecodeError",
    "CloseReason",
    "ConnectFailure",
    "ConnectionState",
    "ConnectionStatus",
    "FallbackHttpError",
    "PendingRequest",
    "ProtocolError",
    "ReconnectPolicy",
    "RequestTimeoutError",
    "ServerRejectedError",
    "TradeLinkError",
    "TransportMode",
    "TransportUnavailableError",
]
