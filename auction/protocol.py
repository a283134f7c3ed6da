"""
Wire codec for the auction protocol.

One JSON object per WebSocket text frame. Inbound records carry
``type``, ``item_name``, ``amount``, ``username``, ``time_left`` and
``content``; outbound records carry ``type`` (``bid`` or ``start``),
``username``, ``amount`` and, for ``start``, ``item_name``.

Decoding is lenient about field values: a missing or malformed number
becomes ``None`` so the fold can carry the previous value forward. Only
frames that are not JSON objects, or whose ``type`` is unknown, raise
ProtocolError.
"""

import json
from typing import Any, Dict, Optional, Union

from .exceptions import ProtocolError
from .models import (
    BidIntent, Ended, InboundMessage, ListingIntent, OutboundIntent,
    ServerError, Update,
)

MSG_UPDATE = "update"
MSG_END = "end"
MSG_ERROR = "error"
MSG_BID = "bid"
MSG_START = "start"

# Intent types the authority may echo back; they carry no state for us
ECHO_TYPES = (MSG_BID, MSG_START)


def parse_int(value: Any) -> Optional[int]:
    """Non-negative integer from a wire value, or None if unusable"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if value.is_integer() and value >= 0:
            return int(value)
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return int(text)
    return None


def parse_str(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    return None


def _non_empty(value: Any) -> Optional[str]:
    text = parse_str(value)
    return text if text else None


def decode_inbound(raw: Union[str, bytes]) -> Optional[InboundMessage]:
    """
    Decode one frame from the authority.

    Returns None for echoed intent records, which are valid but carry no
    state change.

    Raises:
        ProtocolError: frame is not a JSON object or has an unknown type
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError(f"Frame is not valid UTF-8: {e}", raw=raw) from e

    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Frame is not valid JSON: {e}", raw=raw) from e

    if not isinstance(data, dict):
        raise ProtocolError("Frame is not a JSON object", raw=raw)

    msg_type = data.get("type")

    if msg_type == MSG_UPDATE:
        return Update(
            amount=parse_int(data.get("amount")),
            bidder=parse_str(data.get("username")),
            time_remaining=parse_int(data.get("time_left")),
            item_name=_non_empty(data.get("item_name")),
            content=_non_empty(data.get("content")),
        )
    if msg_type == MSG_END:
        return Ended(
            amount=parse_int(data.get("amount")),
            bidder=parse_str(data.get("username")),
            content=_non_empty(data.get("content")),
        )
    if msg_type == MSG_ERROR:
        return ServerError(content=parse_str(data.get("content")) or "")
    if msg_type in ECHO_TYPES:
        return None

    raise ProtocolError(f"Unknown message type: {msg_type!r}", raw=raw)


def intent_to_dict(intent: OutboundIntent) -> Dict[str, Any]:
    """Wire record for an outbound intent"""
    if isinstance(intent, BidIntent):
        return {
            "type": MSG_BID,
            "username": intent.bidder,
            "amount": intent.amount,
        }
    if isinstance(intent, ListingIntent):
        return {
            "type": MSG_START,
            "username": intent.username,
            "item_name": intent.item_name,
            "amount": intent.starting_amount,
        }
    raise TypeError(f"Not an outbound intent: {type(intent).__name__}")


def encode_intent(intent: OutboundIntent) -> str:
    return json.dumps(intent_to_dict(intent))
