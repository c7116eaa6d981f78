"""
Channel wire protocol.

Every frame is a JSON object in a text message:

    out  {"id": ..., "method": ..., "params": {...}}           request
    out  {"type": "subscribe", "payload": {"channel": ...}}    control
    in   {"id": ..., "success": true, "data": ...}             response
    in   {"type": ..., "data": ...}                            broadcast
"""

from typing import Any, Literal

import orjson
from pydantic import BaseModel, ValidationError

from tradelink.core.errors import ProtocolError


class RequestMessage(BaseModel):
    """Outbound request correlated by ``id``."""

    id: str
    method: str
    params: dict[str, Any] | None = None


class ControlMessage(BaseModel):
    """Outbound subscribe/unsubscribe control message."""

    type: Literal["subscribe", "unsubscribe"]
    payload: dict[str, Any]


class ResponseMessage(BaseModel):
    """Inbound response to a request."""

    id: str
    success: bool
    data: Any = None
    error: str | None = None


class BroadcastMessage(BaseModel):
    """Inbound server-push message for a topic."""

    type: str
    data: Any


InboundMessage = ResponseMessage | BroadcastMessage


def encode(message: RequestMessage | ControlMessage) -> str:
    """Serialize an outbound message to a JSON text frame."""
    return orjson.dumps(message.model_dump(exclude_none=True)).decode()


def decode(raw: str | bytes) -> InboundMessage:
    """
    Parse an inbound text frame.

    Args:
        raw: Frame contents.

    Returns:
        A response (has ``id`` and ``success``) or a broadcast
        (has ``type`` and ``data``).

    Raises:
        ProtocolError: On invalid JSON or an unrecognized frame shape.
    """
    try:
        obj = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON frame: {e}") from e

    if not isinstance(obj, dict):
        raise ProtocolError(f"Frame is not an object: {type(obj).__name__}")

    try:
        if "id" in obj and "success" in obj:
            return ResponseMessage.model_validate(obj)
        if "type" in obj and "data" in obj:
            return BroadcastMessage.model_validate(obj)
    except ValidationError as e:
        raise ProtocolError(f"Malformed frame: {e.error_count()} validation errors") from e

    raise ProtocolError(f"Unrecognized frame with keys {sorted(obj)}")
