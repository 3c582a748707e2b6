"""HTTP client for the chat API.

``ChatApiClient`` implements the ``SessionStore`` interface over HTTP so the
same ``SessionLifecycle`` retry logic runs in the browser-facing client as on
the server. ``get`` goes through ``POST /sessions/verify`` which reports a
missing session as ``exists: false`` instead of an error.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from pydantic import ValidationError

from streamchat.config import get_settings
from streamchat.errors import ChatError, ErrorKind
from streamchat.models.schemas import ChatSession, Message, StreamFragment
from streamchat.relay.sse import parse_data_line
from streamchat.storage.base import SessionStore

logger = logging.getLogger(__name__)

_STATUS_KINDS = {
    400: ErrorKind.VALIDATION,
    404: ErrorKind.NOT_FOUND,
    422: ErrorKind.VALIDATION,
}


def error_from_response(response: httpx.Response) -> ChatError:
    """Rebuild a ChatError from an error envelope (or a bare status code).

    The response body must already be read.
    """
    try:
        error = (response.json() or {}).get("error") or {}
    except ValueError:
        error = {}
    if error.get("code"):
        kind = ErrorKind.from_code(error["code"])
    else:
        kind = _STATUS_KINDS.get(response.status_code, ErrorKind.INTERNAL)
    message = error.get("message") or f"HTTP error! status: {response.status_code}"
    return ChatError(kind, message, error.get("details"))


class ChatApiClient(SessionStore):
    """Async client for the session and chat endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API root. Defaults to ``API_BASE_URL``.
            http_client: Preconfigured client (tests pass one with a mock
                or ASGI transport). Owned by the caller.
            timeout: Request timeout in seconds for the default client.
        """
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url or get_settings().api_base_url,
            timeout=timeout,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and unwrap the success envelope's ``data``."""
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise ChatError(ErrorKind.TRANSPORT, f"Connection failed: {e}") from e

        if response.is_error:
            raise error_from_response(response)
        try:
            body = response.json()
        except ValueError as e:
            raise ChatError(ErrorKind.TRANSPORT, "Invalid response format from server") from e
        if not body.get("success"):
            raise ChatError(ErrorKind.TRANSPORT, "Invalid response format from server")
        return body.get("data")

    async def create(
        self,
        title: str,
        seed_message: Message | None = None,
        owner_id: str | None = None,
    ) -> ChatSession:
        # owner_id is not part of the HTTP surface
        payload: dict[str, Any] = {"title": title}
        if seed_message is not None:
            payload["firstMessage"] = seed_message.to_wire()
        data = await self._request("POST", "/sessions", json=payload)
        session = ChatSession.model_validate(data)
        logger.info(f"Session created with ID: {session.id}")
        return session

    async def get(self, session_id: str) -> ChatSession | None:
        data = await self._request("POST", "/sessions/verify", json={"sessionId": session_id})
        if not data.get("exists") or not data.get("session"):
            return None
        return ChatSession.model_validate(data["session"])

    async def fetch(self, session_id: str) -> ChatSession:
        """Load the authoritative copy of a session.

        Raises:
            ChatError: NOT_FOUND if the session does not exist.
        """
        data = await self._request("GET", f"/sessions/{session_id}")
        return ChatSession.model_validate(data)

    async def update(
        self,
        session_id: str,
        *,
        title: str | None = None,
        messages: list[Message] | None = None,
    ) -> ChatSession | None:
        payload: dict[str, Any] = {}
        if title is not None:
            payload["title"] = title
        if messages is not None:
            payload["messages"] = [m.to_wire() for m in messages]
        try:
            data = await self._request("PATCH", f"/sessions/{session_id}", json=payload)
        except ChatError as e:
            if e.kind == ErrorKind.NOT_FOUND:
                return None
            raise
        return ChatSession.model_validate(data)

    async def delete(self, session_id: str) -> bool:
        try:
            await self._request("DELETE", f"/sessions/{session_id}")
        except ChatError as e:
            if e.kind == ErrorKind.NOT_FOUND:
                return False
            raise
        return True

    async def delete_all(self) -> None:
        await self._request("DELETE", "/sessions")

    async def list_all(self) -> list[ChatSession]:
        data = await self._request("GET", "/sessions")
        return [ChatSession.model_validate(item) for item in data or []]

    async def stream_chat(
        self,
        session_id: str,
        message: str,
        history: list[Message],
    ) -> AsyncIterator[StreamFragment | str]:
        """Send a chat turn and yield decoded frames as they arrive.

        Yields:
            ``StreamFragment`` objects, then ``DONE_MARKER`` on success.

        Raises:
            ChatError: The server's error before streaming started, or
                TRANSPORT if the connection fails at any point.
        """
        payload = {
            "sessionId": session_id,
            "message": message,
            "history": [m.to_wire() for m in history],
        }
        try:
            async with self._http.stream(
                "POST",
                "/chat",
                json=payload,
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise error_from_response(response)
                async for line in response.aiter_lines():
                    try:
                        frame = parse_data_line(line)
                    except ValidationError as e:
                        logger.error(f"Error parsing SSE data: {e}")
                        continue
                    if frame is not None:
                        yield frame
        except httpx.RequestError as e:
            raise ChatError(ErrorKind.TRANSPORT, f"Connection failed: {e}") from e

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()
