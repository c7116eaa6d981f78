"""Telemetry module for logging, transport metrics, and status reporting."""

from tradelink.telemetry.logger import LogPipeline, setup_logging
from tradelink.telemetry.metrics import LatencyStats, TransportMetrics
from tradelink.telemetry.reporter import StatusReporter


__all__ = [
    "LatencyStats",
    "LogPipeline",
    "StatusReporter",
    "TransportMetrics",
    "setup_logging",
]
