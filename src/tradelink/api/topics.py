"""
Typed decoding of broadcast payloads by topic family.

Topic keys are either a bare topic (``sessions``, ``balance``) or a topic
followed by its scope (``trades_42``, ``market_analysis_BTCUSDT``).
"""

from typing import Any

from pydantic import TypeAdapter, ValidationError

from tradelink.api.models import MarketAnalysis, TotalBalance, Trade, TradingSession
from tradelink.config.constants import (
    TOPIC_BALANCE,
    TOPIC_MARKET_ANALYSIS,
    TOPIC_SESSIONS,
    TOPIC_TRADES,
)
from tradelink.core.errors import BroadcastDecodeError


_EXACT_TOPICS: dict[str, TypeAdapter[Any]] = {
    TOPIC_SESSIONS: TypeAdapter(list[TradingSession]),
    TOPIC_BALANCE: TypeAdapter(TotalBalance),
}

# Checked in order: "market_analysis_" before any shorter prefix
_SCOPED_TOPICS: tuple[tuple[str, TypeAdapter[Any]], ...] = (
    (f"{TOPIC_MARKET_ANALYSIS}_", TypeAdapter(list[MarketAnalysis])),
    (f"{TOPIC_TRADES}_", TypeAdapter(list[Trade])),
)


def adapter_for(topic: str) -> TypeAdapter[Any] | None:
    """Find the payload type of a topic key, or None if it is unknown."""
    adapter = _EXACT_TOPICS.get(topic)
    if adapter is not None:
        return adapter

    for prefix, scoped in _SCOPED_TOPICS:
        if topic.startswith(prefix) and len(topic) > len(prefix):
            return scoped
    return None


def decode_broadcast(topic: str, data: Any) -> Any:
    """
    Validate a broadcast payload against its topic family.

    Args:
        topic: Broadcast ``type`` field.
        data: Raw broadcast ``data`` field.

    Returns:
        The typed payload (e.g. ``list[TradingSession]`` for ``sessions``).

    Raises:
        BroadcastDecodeError: Unknown topic or payload of the wrong shape.
    """
    adapter = adapter_for(topic)
    if adapter is None:
        raise BroadcastDecodeError(f"Unknown broadcast topic: {topic}", topic=topic)

    try:
        return adapter.validate_python(data)
    except ValidationError as e:
        raise BroadcastDecodeError(
            f"Malformed {topic} payload: {e.error_count()} validation errors", topic=topic
        ) from e
