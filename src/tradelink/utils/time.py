"""
Clock helpers for request ids, broadcast stamps and round-trip timing.

Wall-clock values identify *when* something happened; durations are
measured on the monotonic performance counter so clock adjustments never
produce negative round trips.
"""

import time


def get_timestamp_us() -> int:
    """Wall-clock Unix time in microseconds."""
    return time.time_ns() // 1_000


def get_timestamp_ms() -> int:
    """Wall-clock Unix time in milliseconds; the prefix of channel request ids."""
    return time.time_ns() // 1_000_000


class LatencyTimer:
    """
    Measures the duration of a ``with`` block in microseconds.

    Example:
        >>> with LatencyTimer() as timer:
        ...     await http.request("GET", "/trading/sessions")
        >>> metrics.record_latency(HTTP_RTT, timer.latency_us)
    """

    __slots__ = ("_started_ns", "latency_us")

    def __init__(self) -> None:
        self._started_ns = 0
        self.latency_us = 0

    def __enter__(self) -> "LatencyTimer":
        self._started_ns = time.perf_counter_ns()
        return self

    def __exit__(self, *args: object) -> None:
        self.latency_us = (time.perf_counter_ns() - self._started_ns) // 1_000


def format_duration_us(duration_us: int) -> str:
    """
    Render a duration for status output.

    Examples:
        >>> format_duration_us(850)
        '850μs'
        >>> format_duration_us(12_400)
        '12.40ms'
        >>> format_duration_us(1_250_000)
        '1.25s'
    """
    if duration_us < 1_000:
        return f"{duration_us}μs"
    divisor, unit = (1_000, "ms") if duration_us < 1_000_000 else (1_000_000, "s")
    return f"{duration_us / divisor:.2f}{unit}"
