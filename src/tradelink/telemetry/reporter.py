"""
Terminal status panel for the client.

Renders the connection state and transport metrics as a boxed panel,
for one-shot checks and for periodic output while watching broadcasts.
"""

import sys
from datetime import timedelta
from typing import TextIO

from tradelink.core.types import ConnectionStatus
from tradelink.telemetry.metrics import (
    BROADCASTS,
    CHANNEL_REQUESTS,
    CHANNEL_RTT,
    DROPPED_FRAMES,
    FALLBACKS,
    HTTP_REQUESTS,
    HTTP_RTT,
    RECONNECT_ATTEMPTS,
    REQUEST_TIMEOUTS,
    LatencyStats,
    TransportMetrics,
)
from tradelink.utils.time import format_duration_us


class StatusReporter:
    """
    Boxed connection status panel.

    Shows:
    - Transport in use and channel state
    - Request counts and round-trip latency per transport
    - Fallback, timeout, reconnect and broadcast counters
    """

    BOX_TL = "\u2554"  # ╔
    BOX_TR = "\u2557"  # ╗
    BOX_BL = "\u255a"  # ╚
    BOX_BR = "\u255d"  # ╝
    BOX_H = "\u2550"  # ═
    BOX_V = "\u2551"  # ║
    BOX_LT = "\u2560"  # ╠
    BOX_RT = "\u2563"  # ╣

    def __init__(
        self,
        metrics: TransportMetrics,
        width: int = 64,
        output: TextIO | None = None,
        title: str = "TRADELINK",
    ) -> None:
        """
        Initialize reporter.

        Args:
            metrics: Metrics of the client being reported.
            width: Panel width in characters.
            output: Output stream (default: stdout).
            title: Header text.
        """
        self._metrics = metrics
        self._width = width
        self._output = output or sys.stdout
        self._title = title
        self._status: ConnectionStatus | None = None

    def set_status(self, status: ConnectionStatus) -> None:
        """Update the connection snapshot shown in the panel."""
        self._status = status

    @staticmethod
    def _format_uptime(seconds: float) -> str:
        """Format uptime as HH:MM:SS."""
        total = int(timedelta(seconds=int(seconds)).total_seconds())
        hours, remainder = divmod(total, 3600)
        minutes, secs = divmod(remainder, 60)
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"

    @staticmethod
    def _format_latency(stats: LatencyStats) -> str:
        if stats.count == 0:
            return "---"
        return f"avg {format_duration_us(int(stats.avg_us))} p99 {format_duration_us(stats.p99_us)}"

    def _line(self, content: str) -> str:
        inner = self._width - 2
        return f"{self.BOX_V}{content.ljust(inner)[:inner]}{self.BOX_V}"

    def _rule(self, left: str, right: str) -> str:
        return f"{left}{self.BOX_H * (self._width - 2)}{right}"

    def _transport_label(self) -> str:
        status = self._status
        if status is None:
            return "UNKNOWN"
        if status.connected and status.using_channel:
            return "CHANNEL"
        if status.using_channel:
            return "CHANNEL (reconnecting)"
        return "HTTP FALLBACK"

    def render(self) -> str:
        """
        Render the panel.

        Returns:
            Formatted panel string.
        """
        m = self._metrics
        status = self._status
        lines = [self._rule(self.BOX_TL, self.BOX_TR)]

        lines.append(self._line(f"  {self._title} | Transport: {self._transport_label()}"))
        lines.append(self._rule(self.BOX_LT, self.BOX_RT))

        if status is not None:
            topics = ", ".join(status.topics) or "none"
            lines.append(
                self._line(
                    f"  Connected: {'yes' if status.connected else 'no'}  |  "
                    f"Reconnect attempts: {status.reconnect_attempts}"
                )
            )
            lines.append(self._line(f"  Subscriptions ({status.subscription_count}): {topics}"))
            lines.append(self._rule(self.BOX_LT, self.BOX_RT))

        lines.append(
            self._line(
                f"  Channel: {m.get_counter(CHANNEL_REQUESTS):>6,}  "
                f"{self._format_latency(m.get_latency_stats(CHANNEL_RTT))}"
            )
        )
        lines.append(
            self._line(
                f"  HTTP:    {m.get_counter(HTTP_REQUESTS):>6,}  "
                f"{self._format_latency(m.get_latency_stats(HTTP_RTT))}"
            )
        )
        lines.append(self._rule(self.BOX_LT, self.BOX_RT))
        lines.append(
            self._line(
                f"  Fallbacks: {m.get_counter(FALLBACKS)}  "
                f"Timeouts: {m.get_counter(REQUEST_TIMEOUTS)}  "
                f"Reconnects: {m.get_counter(RECONNECT_ATTEMPTS)}"
            )
        )
        lines.append(
            self._line(
                f"  Broadcasts: {m.get_counter(BROADCASTS)}  "
                f"Dropped: {m.get_counter(DROPPED_FRAMES)}  "
                f"Uptime: {self._format_uptime(m.uptime_seconds)}"
            )
        )

        lines.append(self._rule(self.BOX_BL, self.BOX_BR))
        return "\n".join(lines)

    def display(self, clear: bool = False) -> None:
        """Write the panel once."""
        if clear:
            self._output.write("\033[2J\033[H")
        self._output.write(self.render())
        self._output.write("\n")
        self._output.flush()

    def print_summary(self) -> None:
        """Print a final summary of transport usage."""
        m = self._metrics
        out = self._output
        out.write("\n" + "=" * 50 + "\n")
        out.write("  SESSION SUMMARY\n")
        out.write("=" * 50 + "\n")
        out.write(f"  Uptime:            {self._format_uptime(m.uptime_seconds)}\n")
        out.write(f"  Channel requests:  {m.get_counter(CHANNEL_REQUESTS):,}\n")
        out.write(f"  HTTP requests:     {m.get_counter(HTTP_REQUESTS):,}\n")
        out.write(f"  Channel share:     {m.channel_share:.1%}\n")
        out.write(f"  Fallbacks:         {m.get_counter(FALLBACKS):,}\n")
        out.write(f"  Broadcasts:        {m.get_counter(BROADCASTS):,}\n")
        out.write("=" * 50 + "\n")
        out.flush()
