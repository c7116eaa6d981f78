"""
Client error taxonomy.

Transport-level errors (channel unavailable, request timeout) are handled
inside the client by falling back to HTTP. Only server rejections and
fallback HTTP failures are expected to reach callers.
"""


class TradeLinkError(Exception):
    """Base exception for trading client errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportUnavailableError(TradeLinkError):
    """The channel is not connected or not preferred."""

    pass


class RequestTimeoutError(TradeLinkError):
    """No correlated response arrived within the request timeout."""

    def __init__(self, method: str, timeout: float) -> None:
        super().__init__(f"Request timeout: {method} got no response in {timeout:.1f}s")
        self.method = method
        self.timeout = timeout


class ServerRejectedError(TradeLinkError):
    """The service answered with ``success: false``."""

    def __init__(self, message: str, method: str | None = None) -> None:
        super().__init__(message)
        self.method = method


class FallbackHttpError(TradeLinkError):
    """The stateless call failed or returned a malformed body."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ConnectFailure(TradeLinkError):
    """The channel failed to open. Absorbed by the connection manager."""

    pass


class ProtocolError(TradeLinkError):
    """A frame or payload does not match the wire contract."""

    pass


class BroadcastDecodeError(ProtocolError):
    """A broadcast carries an unknown topic or a payload of the wrong shape."""

    def __init__(self, message: str, topic: str) -> None:
        super().__init__(message)
        self.topic = topic
