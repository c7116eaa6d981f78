"""Mock implementations for testing."""

from tests.mocks.channel import ChannelScript, FakeSocket, eventually
from tests.mocks.server import MockTradingService


__all__ = [
    "ChannelScript",
    "FakeSocket",
    "MockTradingService",
    "eventually",
]
