"""Utility functions for the trading client."""

from tradelink.utils.time import (
    LatencyTimer,
    format_duration_us,
    get_timestamp_ms,
    get_timestamp_us,
)


__all__ = [
    "LatencyTimer",
    "format_duration_us",
    "get_timestamp_ms",
    "get_timestamp_us",
]
