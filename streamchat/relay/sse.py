"""Server-sent event framing for the chat stream.

Each frame is ``data: <payload>\\n\\n`` where the payload is either a JSON
``StreamFragment`` or the literal ``[DONE]`` terminal marker.
"""

from typing import Final

from streamchat.models.schemas import StreamFragment

DONE_MARKER: Final = "[DONE]"
DONE_FRAME: Final = f"data: {DONE_MARKER}\n\n"


def encode_fragment(fragment: StreamFragment) -> str:
    return f"data: {fragment.model_dump_json(exclude_none=True)}\n\n"


def content_frame(text: str) -> str:
    return encode_fragment(StreamFragment(content=text))


def error_frame(message: str, code: str) -> str:
    return encode_fragment(StreamFragment(error=message, code=code))


def parse_data_line(line: str) -> StreamFragment | str | None:
    """Decode one line of an event stream.

    Returns:
        ``DONE_MARKER`` for the terminal frame, a ``StreamFragment`` for a
        JSON frame, or None for blank lines and non-data fields.

    Raises:
        pydantic.ValidationError: If the payload is not a valid fragment.
    """
    if not line.startswith("data:"):
        return None
    data = line[len("data:"):].strip()
    if not data:
        return None
    if data == DONE_MARKER:
        return DONE_MARKER
    return StreamFragment.model_validate_json(data)
