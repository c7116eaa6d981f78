"""
Pytest configuration and shared fixtures.

Provides reusable test fixtures for all test modules.
"""

from collections.abc import AsyncIterator
from typing import Any

import pytest
import pytest_asyncio

from tests.mocks.channel import ChannelScript
from tests.mocks.server import MockTradingService, channel_results
from tradelink.api.client import TradingClient
from tradelink.config.settings import Settings
from tradelink.core.event_bus import BroadcastBus
from tradelink.telemetry.metrics import TransportMetrics
from tradelink.transport.connection import ConnectionManager


# =============================================================================
# Settings Fixtures
# =============================================================================


def make_settings(**overrides: Any) -> Settings:
    """Settings with timeouts scaled down for tests."""
    values: dict[str, Any] = {
        "api_base_url": "http://127.0.0.1:9",
        "ws_url": "ws://127.0.0.1:9/ws",
        "connect_timeout": 0.3,
        "request_timeout": 0.2,
        "http_timeout": 2.0,
        "reconnect_delay": 0.01,
        "max_reconnect_attempts": 2,
        "health_check_interval": 3600.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    """Fast test settings pointing at an unused port."""
    return make_settings()


# =============================================================================
# Channel Fixtures
# =============================================================================


@pytest.fixture
def script() -> ChannelScript:
    """Connector answering every channel method with sample data."""
    return ChannelScript(results=channel_results())


@pytest.fixture
def metrics() -> TransportMetrics:
    """Fresh metrics collector."""
    return TransportMetrics()


@pytest.fixture
def frames() -> list[str | bytes]:
    """Inbound frames captured by ``connection``."""
    return []


@pytest_asyncio.fixture
async def connection(
    script: ChannelScript,
    metrics: TransportMetrics,
    frames: list[str | bytes],
) -> AsyncIterator[ConnectionManager]:
    """Connection manager over the scripted channel, not yet connected."""
    manager = ConnectionManager(
        url="ws://test/ws",
        on_frame=frames.append,
        connect_timeout=0.2,
        reconnect_delay=0.01,
        max_reconnect_attempts=2,
        health_check_interval=3600.0,
        connector=script,
        metrics=metrics,
    )
    yield manager
    await manager.disconnect()


@pytest.fixture
def bus() -> BroadcastBus:
    """Broadcast bus without a decoder."""
    return BroadcastBus()


# =============================================================================
# Client Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(settings: Settings, script: ChannelScript) -> AsyncIterator[TradingClient]:
    """Trading client over the scripted channel, not yet connected."""
    trading_client = TradingClient(settings, connector=script)
    yield trading_client
    await trading_client.disconnect()


@pytest_asyncio.fixture
async def service() -> AsyncIterator[MockTradingService]:
    """Running mock trading service."""
    mock_service = MockTradingService()
    await mock_service.start()
    yield mock_service
    await mock_service.stop()


@pytest.fixture
def service_settings(service: MockTradingService) -> Settings:
    """Settings pointing at the mock trading service."""
    return make_settings(api_base_url=service.base_url, ws_url=service.ws_url)


@pytest_asyncio.fixture
async def live_client(service_settings: Settings) -> AsyncIterator[TradingClient]:
    """Trading client talking to the mock trading service over real sockets."""
    trading_client = TradingClient(service_settings)
    yield trading_client
    await trading_client.disconnect()
