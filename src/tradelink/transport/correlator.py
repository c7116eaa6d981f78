"""
Request/response correlation over the shared channel.

Each outgoing request gets an id, a pending entry and a timeout timer.
The first of {matching response, timeout, channel close} settles the
caller's future; the others find no entry and do nothing.
"""

import asyncio
import logging
import random
import string
from typing import Any

from tradelink.config.constants import DEFAULT_REQUEST_TIMEOUT, REQUEST_ID_SUFFIX_LENGTH
from tradelink.core.errors import (
    RequestTimeoutError,
    ServerRejectedError,
    TransportUnavailableError,
)
from tradelink.core.types import PendingRequest
from tradelink.telemetry.metrics import (
    CHANNEL_REQUESTS,
    CHANNEL_RTT,
    REQUEST_TIMEOUTS,
    TransportMetrics,
)
from tradelink.transport.connection import ConnectionManager
from tradelink.transport.protocol import RequestMessage, ResponseMessage, encode
from tradelink.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


class RequestCorrelator:
    """
    Tracks in-flight channel requests.

    Features:
    - Timestamp + random base-36 ids, unique among pending requests
    - Per-request timeout timers on the event loop
    - Exactly-once settlement
    """

    def __init__(
        self,
        connection: ConnectionManager,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        metrics: TransportMetrics | None = None,
    ) -> None:
        """
        Initialize correlator.

        Args:
            connection: Channel used to send requests.
            timeout: Seconds to wait for each response.
            metrics: Optional metrics collector.
        """
        self._connection = connection
        self._timeout = timeout
        self._metrics = metrics or TransportMetrics()
        self._pending: dict[str, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting a response."""
        return len(self._pending)

    def is_pending(self, request_id: str) -> bool:
        """Check if a request id is still awaiting a response."""
        return request_id in self._pending

    def _next_id(self) -> str:
        """Generate an id that no pending request uses."""
        while True:
            suffix = "".join(random.choices(_ID_ALPHABET, k=REQUEST_ID_SUFFIX_LENGTH))
            request_id = f"{get_timestamp_ms()}{suffix}"
            if request_id not in self._pending:
                return request_id

    async def send_request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """
        Send a request and wait for its response.

        Args:
            method: Remote method name.
            params: Method parameters.

        Returns:
            The response ``data`` field.

        Raises:
            TransportUnavailableError: Channel not available or write failed.
            RequestTimeoutError: No response within the timeout.
            ServerRejectedError: Response carried ``success: false``.
        """
        if not self._connection.channel_available:
            raise TransportUnavailableError("Channel not connected")

        loop = asyncio.get_running_loop()
        request_id = self._next_id()
        pending = PendingRequest(
            id=request_id,
            method=method,
            future=loop.create_future(),
            sent_at=loop.time(),
        )
        pending.timer = loop.call_later(self._timeout, self._expire, request_id)
        self._pending[request_id] = pending

        frame = encode(RequestMessage(id=request_id, method=method, params=params))
        try:
            await self._connection.send(frame)
        except BaseException:
            self._discard(request_id)
            raise

        try:
            return await pending.future
        finally:
            # Caller cancelled: drop the entry so a late response is ignored
            if self._pending.get(request_id) is pending:
                self._discard(request_id)

    def resolve(self, response: ResponseMessage) -> bool:
        """
        Settle the request matching ``response.id``.

        Returns:
            False if no request is pending under that id (late or foreign).
        """
        pending = self._pending.pop(response.id, None)
        if pending is None:
            logger.debug(f"Dropping response for unknown request {response.id}")
            return False

        if pending.timer is not None:
            pending.timer.cancel()

        if pending.is_settled:
            return True

        self._metrics.increment_counter(CHANNEL_REQUESTS)
        self._metrics.record_latency(
            CHANNEL_RTT, int((pending.future.get_loop().time() - pending.sent_at) * 1_000_000)
        )

        if response.success:
            pending.future.set_result(response.data)
        else:
            pending.future.set_exception(
                ServerRejectedError(response.error or "Unknown error", method=pending.method)
            )
        return True

    def _expire(self, request_id: str) -> None:
        """Timeout timer callback."""
        pending = self._pending.pop(request_id, None)
        if pending is None or pending.is_settled:
            return

        self._metrics.increment_counter(REQUEST_TIMEOUTS)
        logger.warning(f"Request {pending.method} ({request_id}) timed out")
        pending.future.set_exception(RequestTimeoutError(pending.method, self._timeout))

    def _discard(self, request_id: str) -> None:
        """Remove an entry without settling it."""
        pending = self._pending.pop(request_id, None)
        if pending is not None and pending.timer is not None:
            pending.timer.cancel()

    def fail_all(self, message: str) -> int:
        """
        Fail every pending request with ``TransportUnavailableError``.

        Returns:
            Number of requests failed.
        """
        pending_requests = list(self._pending.values())
        self._pending.clear()

        failed = 0
        for pending in pending_requests:
            if pending.timer is not None:
                pending.timer.cancel()
            if not pending.is_settled:
                pending.future.set_exception(TransportUnavailableError(message))
                failed += 1

        if failed:
            logger.warning(f"Failed {failed} pending requests: {message}")
        return failed
