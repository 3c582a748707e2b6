"""Streaming chat endpoint.

``POST /chat`` answers with ``text/event-stream``. Validation and session
problems are reported before streaming starts, as a JSON error envelope.
After that the status is 200 and failures arrive as an error frame.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from streamchat.api.deps import get_relay
from streamchat.models.schemas import ChatRequest
from streamchat.relay.stream_relay import StreamRelay

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable buffering for nginx
}


@router.post("/chat")
async def chat(body: ChatRequest, relay: StreamRelay = Depends(get_relay)) -> StreamingResponse:
    """Stream the assistant reply for one user message.

    Args:
        body: Session id, new message and prior history.

    Returns:
        SSE stream of ``{"content": ...}`` frames ending with ``[DONE]``,
        or with a single ``{"error": ..., "code": "AI_ERROR"}`` frame.

    Raises:
        400: Empty, oversized or malformed input.
        404: Session not found after bounded retries.
        500: Provider could not be reached.
    """
    turn = await relay.open_turn(body.session_id, body.message, body.history)
    return StreamingResponse(
        turn.frames(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
