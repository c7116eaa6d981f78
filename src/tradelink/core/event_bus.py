"""
Broadcast bus for server-push topics.

Provides a typed publish/subscribe registry that fans inbound broadcasts
out to in-process listeners without coupling them to the transport.
"""

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from tradelink.utils.time import get_timestamp_us


logger = logging.getLogger(__name__)


T = TypeVar("T")


@dataclass(frozen=True)
class Broadcast(Generic[T]):
    """A decoded broadcast with its topic key."""

    topic: str
    payload: T
    timestamp_us: int = 0


# Type aliases
BroadcastListener = Callable[[Broadcast[Any]], None]
BroadcastDecoder = Callable[[str, Any], Any]


class BroadcastBus:
    """
    Synchronous topic -> listeners registry.

    Features:
    - Payloads decoded once per broadcast, before fan-out
    - Listeners called in registration order
    - Error isolation per listener
    """

    def __init__(self, decoder: BroadcastDecoder | None = None) -> None:
        """
        Initialize broadcast bus.

        Args:
            decoder: Turns a raw ``data`` field into the typed payload for a
                topic. Raises ``BroadcastDecodeError`` for unknown topics.
        """
        self._listeners: dict[str, list[BroadcastListener]] = defaultdict(list)
        self._decoder = decoder
        self._delivered = 0

    def on(self, topic: str, listener: BroadcastListener) -> None:
        """
        Register a listener for a topic.

        Args:
            topic: Topic key (e.g. ``sessions``, ``market_analysis_BTCUSDT``).
            listener: Callback receiving each ``Broadcast``.
        """
        self._listeners[topic].append(listener)

    def off(self, topic: str, listener: BroadcastListener) -> bool:
        """
        Remove a listener.

        Returns:
            True if listener was found and removed.
        """
        listeners = self._listeners.get(topic)
        if not listeners:
            return False

        for i, registered in enumerate(listeners):
            if registered == listener:
                listeners.pop(i)
                if not listeners:
                    del self._listeners[topic]
                return True

        return False

    def emit(self, topic: str, data: Any) -> int:
        """
        Decode and deliver a broadcast to every listener of its topic.

        Args:
            topic: Broadcast ``type`` field.
            data: Raw broadcast ``data`` field.

        Returns:
            Number of listeners that handled the broadcast without error.

        Raises:
            BroadcastDecodeError: If the decoder rejects the topic or payload.
        """
        payload = self._decoder(topic, data) if self._decoder else data
        broadcast = Broadcast(topic=topic, payload=payload, timestamp_us=get_timestamp_us())

        delivered = 0
        # Copy so listeners may unregister themselves during delivery
        for listener in list(self._listeners.get(topic, ())):
            try:
                listener(broadcast)
                delivered += 1
            except Exception as e:
                logger.error(f"Listener error for {topic}: {e}")

        self._delivered += delivered
        return delivered

    def clear(self, topic: str | None = None) -> None:
        """
        Clear listeners.

        Args:
            topic: Specific topic to clear, or None for all.
        """
        if topic:
            self._listeners.pop(topic, None)
        else:
            self._listeners.clear()

    def listener_count(self, topic: str) -> int:
        """Get number of listeners for a topic."""
        return len(self._listeners.get(topic, ()))

    @property
    def topics(self) -> list[str]:
        """Topics with at least one listener."""
        return list(self._listeners)

    @property
    def delivered_count(self) -> int:
        """Total successful listener deliveries."""
        return self._delivered
