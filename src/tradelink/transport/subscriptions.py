"""
Broadcast topic subscriptions.

Sends subscribe/unsubscribe control messages over the channel and hands
inbound broadcasts to the broadcast bus.
"""

import logging

from tradelink.config.constants import CONTROL_SUBSCRIBE, CONTROL_UNSUBSCRIBE
from tradelink.core.errors import BroadcastDecodeError, TransportUnavailableError
from tradelink.core.event_bus import BroadcastBus, BroadcastListener
from tradelink.telemetry.metrics import BROADCASTS, DROPPED_FRAMES, TransportMetrics
from tradelink.transport.connection import ConnectionManager
from tradelink.transport.protocol import BroadcastMessage, ControlMessage, encode


logger = logging.getLogger(__name__)


def topic_key(topic: str, **scope: str) -> str:
    """
    Build the composite key for a topic and its scope.

    Example:
        >>> topic_key("market_analysis", symbol="BTCUSDT")
        'market_analysis_BTCUSDT'
    """
    return "_".join([topic, *(str(value) for value in scope.values())])


class SubscriptionRegistry:
    """
    Topic keys the server is expected to push to this client.

    Subscribing is idempotent on the key set. The set is kept for status
    panels and for the optional replay after a reconnect.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        bus: BroadcastBus,
        metrics: TransportMetrics | None = None,
    ) -> None:
        """
        Initialize registry.

        Args:
            connection: Channel used for control messages.
            bus: Listener registry receiving decoded broadcasts.
            metrics: Optional metrics collector.
        """
        self._connection = connection
        self._bus = bus
        self._metrics = metrics or TransportMetrics()
        self._topics: dict[str, tuple[str, dict[str, str]]] = {}

    @property
    def topics(self) -> tuple[str, ...]:
        """Active topic keys in subscription order."""
        return tuple(self._topics)

    def __len__(self) -> int:
        return len(self._topics)

    def __contains__(self, key: object) -> bool:
        return key in self._topics

    async def subscribe(self, topic: str, **scope: str) -> bool:
        """
        Ask the server to push a topic.

        Args:
            topic: Topic name (e.g. ``trades``).
            **scope: Scope parameters (e.g. ``sessionId="42"``).

        Returns:
            True if the control message was sent. False when the channel is
            down; the caller should poll instead.
        """
        key = topic_key(topic, **scope)
        if not self._connection.channel_available:
            logger.debug(f"Channel unavailable, {key} will be polled over HTTP")
            return False

        if not await self._send_control(CONTROL_SUBSCRIBE, topic, scope):
            return False

        self._topics[key] = (topic, dict(scope))
        return True

    async def unsubscribe(self, topic: str, **scope: str) -> bool:
        """
        Stop a topic.

        The key is forgotten even when the channel is down, so a later
        replay does not revive it.

        Returns:
            True if the control message was sent.
        """
        key = topic_key(topic, **scope)
        self._topics.pop(key, None)

        if not self._connection.channel_available:
            return False

        return await self._send_control(CONTROL_UNSUBSCRIBE, topic, scope)

    async def resubscribe(self) -> int:
        """
        Replay every known subscription.

        Returns:
            Number of control messages sent.
        """
        sent = 0
        for key, (topic, scope) in list(self._topics.items()):
            if await self._send_control(CONTROL_SUBSCRIBE, topic, scope):
                sent += 1
            else:
                logger.warning(f"Could not replay subscription {key}")

        if sent:
            logger.info(f"Replayed {sent} subscriptions")
        return sent

    async def _send_control(self, kind: str, topic: str, scope: dict[str, str]) -> bool:
        """Fire-and-forget control message."""
        frame = encode(ControlMessage(type=kind, payload={"channel": topic, **scope}))
        try:
            await self._connection.send(frame)
        except TransportUnavailableError as e:
            logger.warning(f"{kind} {topic} not sent: {e}")
            return False
        return True

    # =========================================================================
    # Delivery
    # =========================================================================

    def on(self, topic: str, listener: BroadcastListener) -> None:
        """Register a listener for broadcasts of ``topic``."""
        self._bus.on(topic, listener)

    def off(self, topic: str, listener: BroadcastListener) -> bool:
        """Remove a listener."""
        return self._bus.off(topic, listener)

    def dispatch(self, message: BroadcastMessage) -> int:
        """
        Deliver an inbound broadcast to local listeners.

        Returns:
            Number of listeners reached. Undecodable broadcasts are dropped.
        """
        try:
            delivered = self._bus.emit(message.type, message.data)
        except BroadcastDecodeError as e:
            self._metrics.increment_counter(DROPPED_FRAMES)
            logger.warning(f"Dropping broadcast {e.topic}: {e}")
            return 0

        self._metrics.increment_counter(BROADCASTS)
        return delivered
