"""Chat turn relay: provider stream to server-sent events."""

from streamchat.relay.sse import (
    DONE_FRAME,
    DONE_MARKER,
    content_frame,
    encode_fragment,
    error_frame,
    parse_data_line,
)
from streamchat.relay.stream_relay import RelayTurn, StreamRelay, TurnState

__all__ = [
    "DONE_FRAME",
    "DONE_MARKER",
    "RelayTurn",
    "StreamRelay",
    "TurnState",
    "content_frame",
    "encode_fragment",
    "error_frame",
    "parse_data_line",
]
