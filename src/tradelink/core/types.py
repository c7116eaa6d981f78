"""
Type definitions for the trading client.

This module contains the enums and dataclasses describing connection
state, transport preference, and in-flight bookkeeping shared by the
transport components.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

from tradelink.config.constants import (
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_RECONNECT_DELAY,
)


# =============================================================================
# Enums
# =============================================================================


class ConnectionState(Enum):
    """Persistent channel connection state."""

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()


class TransportMode(str, Enum):
    """Which path the client prefers for requests."""

    CHANNEL_PREFERRED = "CHANNEL_PREFERRED"
    FALLBACK_ONLY = "FALLBACK_ONLY"


class CloseReason(str, Enum):
    """Why the persistent channel closed."""

    CLIENT_REQUESTED = "CLIENT_REQUESTED"
    SERVER_INITIATED = "SERVER_INITIATED"
    NETWORK_LOST = "NETWORK_LOST"


# =============================================================================
# Bookkeeping Types
# =============================================================================


@dataclass(slots=True)
class PendingRequest:
    """
    A channel request awaiting its correlated response.

    The future is settled exactly once: by the matching response, by the
    timeout timer, or by the channel closing.
    """

    id: str
    method: str
    future: asyncio.Future[Any]
    sent_at: float  # loop.time()
    timer: asyncio.TimerHandle | None = None

    @property
    def is_settled(self) -> bool:
        """Check if the caller's future already has an outcome."""
        return self.future.done()


@dataclass(slots=True)
class ReconnectPolicy:
    """Bounded fixed-delay reconnection budget."""

    max_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS
    delay: float = DEFAULT_RECONNECT_DELAY
    attempt: int = 0

    @property
    def exhausted(self) -> bool:
        """Check if the failure path may schedule no further attempts."""
        return self.attempt >= self.max_attempts

    def reset(self) -> None:
        """Reset the counter after a successful connection."""
        self.attempt = 0


@dataclass(slots=True, frozen=True)
class ConnectionStatus:
    """Snapshot of client connectivity for status panels."""

    connected: bool
    using_channel: bool
    reconnect_attempts: int
    subscription_count: int
    topics: tuple[str, ...] = field(default_factory=tuple)
