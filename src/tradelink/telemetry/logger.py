"""
Queue-based logging for the client.

Log records are handed to a background thread so that console and file
I/O never stall the event loop while requests are in flight.
"""

import logging
import sys
from datetime import datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import Queue

from tradelink.config.constants import LOG_DATE_FORMAT, LOG_FORMAT, MAX_LOG_QUEUE_SIZE


PACKAGE_LOGGER = "tradelink"

# Third-party loggers kept at WARNING
_NOISY_LOGGERS = ("aiohttp", "aiohttp.access", "asyncio")


class MicrosecondFormatter(logging.Formatter):
    """Formatter with microsecond precision timestamps."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        """Format time with microseconds."""
        ct = datetime.fromtimestamp(record.created)
        return f"{ct.strftime(datefmt or LOG_DATE_FORMAT)}.{ct.microsecond:06d}"


class LogPipeline:
    """
    Non-blocking log pipeline for the ``tradelink`` logger tree.

    Records go through a bounded queue to a ``QueueListener`` that owns the
    real handlers. Stop the pipeline before exit to flush pending records.
    """

    def __init__(
        self,
        level: int = logging.INFO,
        log_file: Path | None = None,
        stream: object = None,
    ) -> None:
        """
        Initialize log pipeline.

        Args:
            level: Console level for the package loggers.
            log_file: Optional file receiving every record at DEBUG.
            stream: Console stream. Defaults to ``sys.stdout``.
        """
        self._level = level
        self._log_file = log_file
        self._stream = stream or sys.stdout
        self._queue: Queue[logging.LogRecord] = Queue(maxsize=MAX_LOG_QUEUE_SIZE)
        self._queue_handler: QueueHandler | None = None
        self._listener: QueueListener | None = None
        self._logger = logging.getLogger(PACKAGE_LOGGER)

    @property
    def running(self) -> bool:
        """Check if the listener thread is running."""
        return self._listener is not None

    def _build_handlers(self) -> list[logging.Handler]:
        formatter = MicrosecondFormatter(LOG_FORMAT, LOG_DATE_FORMAT)

        console = logging.StreamHandler(self._stream)  # type: ignore[arg-type]
        console.setFormatter(formatter)
        console.setLevel(self._level)
        handlers: list[logging.Handler] = [console]

        if self._log_file:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self._log_file)
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.DEBUG)
            handlers.append(file_handler)

        return handlers

    def start(self) -> None:
        """Attach the queue handler and start the listener thread."""
        if self._listener is not None:
            return

        self._queue_handler = QueueHandler(self._queue)
        self._logger.addHandler(self._queue_handler)
        # File output wants DEBUG even when the console does not
        self._logger.setLevel(logging.DEBUG if self._log_file else self._level)
        self._logger.propagate = False

        self._listener = QueueListener(
            self._queue,
            *self._build_handlers(),
            respect_handler_level=True,
        )
        self._listener.start()

    def stop(self) -> None:
        """Flush queued records and detach."""
        if self._listener is not None:
            self._listener.stop()
            for handler in self._listener.handlers:
                handler.close()
            self._listener = None

        if self._queue_handler is not None:
            self._logger.removeHandler(self._queue_handler)
            self._queue_handler = None
        self._logger.propagate = True

    def __enter__(self) -> "LogPipeline":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
) -> LogPipeline:
    """
    Set up client logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional log file path.

    Returns:
        Started pipeline; call ``stop()`` on shutdown.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    pipeline = LogPipeline(level=numeric_level, log_file=log_file)
    pipeline.start()

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return pipeline
