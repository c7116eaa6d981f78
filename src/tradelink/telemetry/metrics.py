"""
Transport metrics.

Counts what each transport did (requests served, fallbacks, timeouts,
reconnects, broadcasts) and keeps a rolling window of round-trip times
per transport for the status panel.
"""

import math
import time
from collections import Counter, deque
from collections.abc import Sequence
from dataclasses import asdict, dataclass

from tradelink.config.constants import LATENCY_WINDOW_SIZE


# Counter names
CHANNEL_REQUESTS = "channel_requests"
HTTP_REQUESTS = "http_requests"
FALLBACKS = "fallbacks"
REQUEST_TIMEOUTS = "request_timeouts"
RECONNECT_ATTEMPTS = "reconnect_attempts"
BROADCASTS = "broadcasts"
DROPPED_FRAMES = "dropped_frames"

# Latency series
CHANNEL_RTT = "channel_rtt"
HTTP_RTT = "http_rtt"


def _nearest_rank(ordered: Sequence[int], fraction: float) -> int:
    """Nearest-rank percentile of an ascending, non-empty sequence."""
    rank = max(1, math.ceil(fraction * len(ordered)))
    return ordered[rank - 1]


@dataclass(frozen=True, slots=True)
class LatencyStats:
    """Round-trip summary of one latency series, in microseconds."""

    count: int = 0
    min_us: int = 0
    max_us: int = 0
    avg_us: float = 0.0
    p50_us: int = 0
    p95_us: int = 0
    p99_us: int = 0

    @classmethod
    def from_samples(cls, samples: Sequence[int]) -> "LatencyStats":
        """Summarize raw samples; an empty series gives all zeros."""
        if not samples:
            return cls()

        ordered = sorted(samples)
        return cls(
            count=len(ordered),
            min_us=ordered[0],
            max_us=ordered[-1],
            avg_us=sum(ordered) / len(ordered),
            p50_us=_nearest_rank(ordered, 0.50),
            p95_us=_nearest_rank(ordered, 0.95),
            p99_us=_nearest_rank(ordered, 0.99),
        )


class TransportMetrics:
    """
    Counters and round-trip windows of one client.

    Every component of a client shares the same instance; it is only
    touched from the event loop thread.
    """

    def __init__(self, latency_window_size: int = LATENCY_WINDOW_SIZE) -> None:
        """
        Initialize metrics collector.

        Args:
            latency_window_size: Samples kept per latency series.
        """
        self._window_size = latency_window_size
        self._series: dict[str, deque[int]] = {}
        self._counters: Counter[str] = Counter()
        self._started = time.monotonic()

    def record_latency(self, name: str, latency_us: int) -> None:
        """Add a round-trip sample to ``name`` (``channel_rtt`` or ``http_rtt``)."""
        series = self._series.get(name)
        if series is None:
            series = self._series[name] = deque(maxlen=self._window_size)
        series.append(latency_us)

    def increment_counter(self, name: str, value: int = 1) -> None:
        """Bump a counter."""
        self._counters[name] += value

    def get_counter(self, name: str) -> int:
        """Get counter value; unknown counters read as zero."""
        return self._counters[name]

    def get_latency_stats(self, name: str) -> LatencyStats:
        """Summarize the current window of a latency series."""
        return LatencyStats.from_samples(self._series.get(name, ()))

    @property
    def uptime_seconds(self) -> float:
        """Seconds since the collector was created or reset."""
        return time.monotonic() - self._started

    @property
    def channel_share(self) -> float:
        """Fraction of completed requests served over the channel."""
        channel = self._counters[CHANNEL_REQUESTS]
        total = channel + self._counters[HTTP_REQUESTS]
        return channel / total if total else 0.0

    def to_dict(self) -> dict[str, object]:
        """Export counters and latency summaries."""
        return {
            "uptime_seconds": self.uptime_seconds,
            "channel_share": self.channel_share,
            "counters": {name: count for name, count in self._counters.items() if count},
            "latencies": {name: asdict(self.get_latency_stats(name)) for name in self._series},
        }

    def reset(self) -> None:
        """Clear everything and restart the uptime clock."""
        self._series.clear()
        self._counters.clear()
        self._started = time.monotonic()
