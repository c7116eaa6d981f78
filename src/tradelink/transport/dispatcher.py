"""
Channel-first dispatch with transparent HTTP fallback.

Every operation is tried over the channel when it is available. Transport
failures get one reconnect-and-retry for reads, then the client is demoted
and the equivalent REST call is made. Callers only ever see the result, a
server rejection, or a ``FallbackHttpError``.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar
from urllib.parse import quote

from pydantic import TypeAdapter, ValidationError

from tradelink.core.errors import (
    FallbackHttpError,
    ProtocolError,
    RequestTimeoutError,
    ServerRejectedError,
    TransportUnavailableError,
)
from tradelink.core.types import CloseReason
from tradelink.telemetry.metrics import FALLBACKS, TransportMetrics
from tradelink.transport.connection import ConnectionManager
from tradelink.transport.correlator import RequestCorrelator
from tradelink.transport.http import HttpFallbackClient


logger = logging.getLogger(__name__)


T = TypeVar("T")

Normalizer = Callable[[Any], Any]


@dataclass(frozen=True)
class Operation(Generic[T]):
    """
    One logical service operation and its two transport renditions.

    ``channel_normalize`` / ``http_normalize`` reshape the raw result of each
    transport before it is validated against ``result``; they raise
    ``ProtocolError`` for shapes they do not recognize.
    """

    method: str
    http_method: str
    path: str
    result: TypeAdapter[T]
    error_message: str
    idempotent: bool = True
    channel_normalize: Normalizer | None = None
    http_normalize: Normalizer | None = None

    def format_path(self, **path_params: object) -> str:
        """Fill the path template with URL-quoted values."""
        return self.path.format(
            **{name: quote(str(value), safe="") for name, value in path_params.items()}
        )

    def from_channel(self, data: Any) -> T:
        """Decode a channel ``data`` field."""
        return self._decode(data, self.channel_normalize)

    def from_http(self, data: Any) -> T:
        """Decode a REST body."""
        return self._decode(data, self.http_normalize)

    def _decode(self, data: Any, normalize: Normalizer | None) -> T:
        if normalize is not None:
            data = normalize(data)
        try:
            return self.result.validate_python(data)
        except ValidationError as e:
            raise ProtocolError(
                f"Unexpected {self.method} result: {e.error_count()} validation errors"
            ) from e


class _Missing:
    """Marker for 'the retry did not produce a result'."""


_MISSING = _Missing()


class FallbackDispatcher:
    """
    Runs operations over the channel or, failing that, over HTTP.

    Retry policy:
    - At most one reconnect-and-retry per call, for idempotent operations
    - No reconnect after the server closed the channel
    - Demotion to ``FALLBACK_ONLY`` once the channel path has failed
    - No retry of server rejections
    """

    def __init__(
        self,
        connection: ConnectionManager,
        correlator: RequestCorrelator,
        http: HttpFallbackClient,
        metrics: TransportMetrics | None = None,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            connection: Channel lifecycle owner.
            correlator: Channel request/response correlation.
            http: Stateless REST client.
            metrics: Optional metrics collector.
        """
        self._connection = connection
        self._correlator = correlator
        self._http = http
        self._metrics = metrics or TransportMetrics()

    async def call(
        self,
        op: Operation[T],
        params: dict[str, Any] | None = None,
        *,
        path_params: dict[str, object] | None = None,
        query: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> T:
        """
        Execute an operation.

        Args:
            op: Operation descriptor.
            params: Channel request parameters.
            path_params: Values for the REST path template.
            query: REST query string.
            body: REST JSON body.

        Returns:
            The decoded result.

        Raises:
            ServerRejectedError: The service refused the request over the channel.
            FallbackHttpError: The REST call failed.
        """
        if self._connection.channel_available:
            try:
                return await self._via_channel(op, params)
            except ServerRejectedError:
                raise
            except (TransportUnavailableError, RequestTimeoutError, ProtocolError) as e:
                logger.warning(f"{op.method} over channel failed: {e}")
                result = await self._retry_after_reconnect(op, params)
                if not isinstance(result, _Missing):
                    return result
                self._connection.demote(f"{op.method} failed over channel")

            self._metrics.increment_counter(FALLBACKS)

        return await self._via_http(op, path_params, query, body)

    async def _via_channel(self, op: Operation[T], params: dict[str, Any] | None) -> T:
        """Request over the channel and decode."""
        data = await self._correlator.send_request(op.method, params)
        return op.from_channel(data)

    async def _retry_after_reconnect(
        self, op: Operation[T], params: dict[str, Any] | None
    ) -> T | _Missing:
        """One reconnect, then one retry if the channel came back."""
        if not op.idempotent:
            return _MISSING
        if self._connection.last_close_reason is CloseReason.SERVER_INITIATED:
            return _MISSING

        logger.info(f"Reconnecting before retrying {op.method}")
        await self._connection.connect()
        if not self._connection.channel_available:
            return _MISSING

        try:
            return await self._via_channel(op, params)
        except ServerRejectedError:
            raise
        except (TransportUnavailableError, RequestTimeoutError, ProtocolError) as e:
            logger.warning(f"Retry of {op.method} over channel failed: {e}")
            return _MISSING

    async def _via_http(
        self,
        op: Operation[T],
        path_params: dict[str, object] | None,
        query: dict[str, str] | None,
        body: dict[str, Any] | None,
    ) -> T:
        """Stateless REST equivalent."""
        path = op.format_path(**(path_params or {}))
        data = await self._http.request(
            op.http_method,
            path,
            params=query,
            json=body,
            error_message=op.error_message,
        )

        try:
            return op.from_http(data)
        except ProtocolError as e:
            raise FallbackHttpError(f"{op.error_message}: {e}") from e
