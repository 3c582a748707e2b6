"""Client-side chat turn orchestration.

Owns the local mirror of the active conversation and drives one turn at a
time: optimistic messages, session creation and verification, the
streamed reply, and the background write of the finished transcript.

Failure policy: optimistic messages are withdrawn only if no assistant text
has been shown yet. Once text is on screen it stays, whatever fails later.
Cancellation never raises and never notifies.
"""

import asyncio
import logging
import re
from collections.abc import Callable
from contextlib import aclosing
from enum import Enum

from streamchat.errors import ChatError, ErrorKind
from streamchat.models.schemas import TITLE_MAX_LENGTH, ChatSession, Message, MessageRole
from streamchat.relay.sse import DONE_MARKER
from streamchat.session.lifecycle import SessionLifecycle
from streamchat.ui.client import ChatApiClient

logger = logging.getLogger(__name__)

TITLE_PREVIEW_LENGTH = 50

Notifier = Callable[[str, str], None]


class TurnOutcome(str, Enum):
    """How a ``send_message`` call ended."""

    IGNORED = "ignored"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


def derive_title(text: str) -> str:
    """Session title from the first message: one line, at most 50 chars."""
    cleaned = re.sub(r"\n+", " ", text.strip())
    if len(cleaned) <= TITLE_PREVIEW_LENGTH:
        return cleaned
    return cleaned[: TITLE_PREVIEW_LENGTH - 3] + "..."


def _log_notification(message: str, level: str) -> None:
    logger.info(f"[{level}] {message}")


class ChatOrchestrator:
    """Local chat state plus the send/cancel/persist workflow.

    Attributes:
        messages: Messages of the active conversation, as rendered.
        session_id: Active session, or None before the first turn.
        sessions: Known sessions for the sidebar, most recent first.
        is_streaming: Whether a turn is in flight.
    """

    def __init__(
        self,
        client: ChatApiClient,
        lifecycle: SessionLifecycle | None = None,
        notify: Notifier | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: API client, also used as the lifecycle's store.
            lifecycle: Session lifecycle (defaults to one over ``client``).
            notify: Receives ``(message, level)`` for user-visible notices;
                level is ``positive``, ``negative``, ``warning`` or ``info``.
            on_change: Called on the next loop tick after state changes.
        """
        self._client = client
        self._lifecycle = lifecycle or SessionLifecycle(client)
        self._notify = notify or _log_notification
        self._on_change = on_change

        self.messages: list[Message] = []
        self.session_id: str | None = None
        self.sessions: list[ChatSession] = []
        self.is_streaming = False

        self._turn_task: asyncio.Task | None = None
        self._cancel: asyncio.Event | None = None
        self._background: set[asyncio.Task] = set()
        self._persist_lock = asyncio.Lock()
        self._transcript_version = 0
        self._change_pending = False

    # --- change notification -------------------------------------------

    def set_on_change(self, callback: Callable[[], None] | None) -> None:
        self._on_change = callback

    def _changed(self) -> None:
        if self._on_change is None or self._change_pending:
            return
        self._change_pending = True
        asyncio.get_running_loop().call_soon(self._flush_change)

    def _flush_change(self) -> None:
        self._change_pending = False
        if self._on_change is not None:
            self._on_change()

    # --- turns -----------------------------------------------------------

    async def send_message(self, text: str) -> TurnOutcome:
        """Send one user message and stream the reply into ``messages``.

        Returns:
            IGNORED for blank text or while another turn is in flight,
            otherwise how the turn ended.
        """
        if not text or not text.strip() or self.is_streaming:
            return TurnOutcome.IGNORED

        self.is_streaming = True
        cancel = asyncio.Event()
        task = asyncio.create_task(self._run_turn(text.strip(), cancel))
        self._cancel = cancel
        self._turn_task = task
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if cancel.is_set() and current is not None and not current.cancelling():
                return TurnOutcome.CANCELLED
            raise
        finally:
            if self._turn_task is task:
                self._turn_task = None
                self._cancel = None
                self.is_streaming = False
                self._changed()

    async def _run_turn(self, text: str, cancel: asyncio.Event) -> TurnOutcome:
        history = [m for m in self.messages if m.content.strip()]
        user_message = Message(role=MessageRole.USER, content=text)
        placeholder = Message(role=MessageRole.ASSISTANT, content="")
        self.messages.extend([user_message, placeholder])
        self._changed()

        shown = False
        try:
            session_id = await self._ensure_session(text, user_message, cancel)
            if cancel.is_set():
                raise ChatError.cancelled()

            logger.info(f"Sending message to session {session_id}")
            async with aclosing(self._client.stream_chat(session_id, text, history)) as frames:
                async for frame in frames:
                    if frame == DONE_MARKER:
                        self._finish_turn(session_id, [*history, user_message, placeholder])
                        return TurnOutcome.COMPLETED
                    if frame.is_error:
                        raise ChatError(
                            ErrorKind.PROVIDER_STREAM,
                            frame.error or "Failed to generate response",
                            details={"code": frame.code},
                        )
                    if frame.content:
                        # The first fragment replaces the empty placeholder text
                        placeholder.content = frame.content if not shown else placeholder.content + frame.content
                        shown = True
                        self._changed()

            raise ChatError(ErrorKind.TRANSPORT, "Connection closed before the reply finished")
        except asyncio.CancelledError:
            self._withdraw_cancelled(user_message, placeholder)
            raise
        except ChatError as e:
            if e.kind == ErrorKind.CANCELLED:
                self._withdraw_cancelled(user_message, placeholder)
                return TurnOutcome.CANCELLED
            self._fail_turn(e, user_message, placeholder, shown)
            return TurnOutcome.FAILED

    async def _ensure_session(
        self,
        text: str,
        user_message: Message,
        cancel: asyncio.Event,
    ) -> str:
        """Create and verify a session for the first turn, or re-check the current one."""
        if self.session_id is None:
            logger.info("Creating new session...")
            session = await self._lifecycle.create_and_verify(
                derive_title(text)[:TITLE_MAX_LENGTH],
                seed_message=user_message,
                cancel=cancel,
            )
            self.session_id = session.id
            self._remember(session)
            return session.id

        # A single check; another tab may have deleted the session
        session = await self._lifecycle.resolve(self.session_id, cancel=cancel, attempts=1)
        if session is None:
            raise ChatError(ErrorKind.NOT_FOUND, "Session not found. Please start a new chat.")
        return self.session_id

    def _finish_turn(self, session_id: str, transcript: list[Message]) -> None:
        self.is_streaming = False
        self._changed()
        self._transcript_version += 1
        task = asyncio.create_task(self._persist(session_id, transcript, self._transcript_version))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _fail_turn(
        self,
        error: ChatError,
        user_message: Message,
        placeholder: Message,
        shown: bool,
    ) -> None:
        logger.error(f"Turn failed ({error.kind.value}): {error.message}")
        if not shown:
            self.messages = [m for m in self.messages if m.id not in (user_message.id, placeholder.id)]
            self._changed()
        self._notify(error.message, "negative")

    def _withdraw_cancelled(self, user_message: Message, placeholder: Message) -> None:
        # Without a session the user message belongs to no stored chat
        dropped: set[str] = set()
        if not placeholder.content:
            dropped.add(placeholder.id)
        if self.session_id is None:
            dropped.add(user_message.id)
        if dropped:
            self.messages = [m for m in self.messages if m.id not in dropped]
            self._changed()

    async def _persist(self, session_id: str, transcript: list[Message], version: int) -> None:
        """Write the finished transcript back; failures are reported only.

        Writes run one at a time in turn order, so an older transcript can
        never land after a newer one. Only the newest write replaces the
        local messages.
        """
        try:
            async with self._persist_lock:
                session = await self._client.update(session_id, messages=transcript)
        except ChatError as e:
            logger.error(f"Failed to update session {session_id}: {e.message}")
            self._notify("Failed to save chat history", "negative")
            return

        if session is None:
            logger.warning(f"Session {session_id} was deleted before the reply was saved")
            self._notify("This chat was deleted; the reply was not saved.", "warning")
            return

        self._remember(session)
        if self.session_id == session_id and not self.is_streaming and version == self._transcript_version:
            self.messages = list(session.messages)
        self._changed()

    async def wait_for_background(self) -> None:
        """Wait for pending transcript writes to finish."""
        if self._background:
            await asyncio.gather(*list(self._background))

    def cancel(self) -> None:
        """Abort the in-flight turn, including pending retry waits."""
        if self._cancel is not None:
            self._cancel.set()
        if self._turn_task is not None and not self._turn_task.done():
            self._turn_task.cancel()
        self._turn_task = None
        self._cancel = None
        if self.is_streaming:
            self.is_streaming = False
            self._changed()

    # --- session management ----------------------------------------------

    def _remember(self, session: ChatSession) -> None:
        others = [s for s in self.sessions if s.id != session.id]
        self.sessions = sorted([session, *others], key=lambda s: s.updated_at, reverse=True)

    def new_chat(self) -> None:
        """Start over with no active session."""
        self.cancel()
        self.session_id = None
        self.messages = []
        self._changed()

    async def refresh_sessions(self) -> list[ChatSession]:
        try:
            self.sessions = await self._client.list_all()
        except ChatError as e:
            logger.error(f"Error fetching sessions: {e.message}")
            self._notify("Failed to load chats", "negative")
        self._changed()
        return self.sessions

    async def load_session(self, session_id: str) -> bool:
        """Switch to a stored session, loading its authoritative copy."""
        self.cancel()
        try:
            session = await self._client.fetch(session_id)
        except ChatError as e:
            logger.error(f"Error fetching session {session_id}: {e.message}")
            if e.kind == ErrorKind.NOT_FOUND:
                self.sessions = [s for s in self.sessions if s.id != session_id]
                self._notify("Session not found", "negative")
            else:
                self._notify("Failed to load chat", "negative")
            self._changed()
            return False

        self.session_id = session.id
        self.messages = list(session.messages)
        self._remember(session)
        self._changed()
        return True

    async def rename_session(self, session_id: str, title: str) -> bool:
        title = title.strip()
        if not title or len(title) > TITLE_MAX_LENGTH:
            self._notify(f"Title must be 1-{TITLE_MAX_LENGTH} characters", "negative")
            return False
        try:
            session = await self._client.update(session_id, title=title)
        except ChatError as e:
            logger.error(f"Failed to rename session {session_id}: {e.message}")
            self._notify("Failed to update chat", "negative")
            return False
        if session is None:
            self._notify("Session not found", "negative")
            return False
        self._remember(session)
        self._notify("Chat session updated", "positive")
        self._changed()
        return True

    async def delete_session(self, session_id: str) -> bool:
        if session_id == self.session_id:
            self.new_chat()
        try:
            deleted = await self._client.delete(session_id)
        except ChatError as e:
            logger.error(f"Failed to delete session {session_id}: {e.message}")
            self._notify("Failed to delete chat", "negative")
            return False
        self.sessions = [s for s in self.sessions if s.id != session_id]
        self._changed()
        if not deleted:
            self._notify("Session not found", "negative")
            return False
        self._notify("Chat deleted", "positive")
        return True

    async def clear_all_sessions(self) -> bool:
        self.new_chat()
        try:
            await self._client.delete_all()
        except ChatError as e:
            logger.error(f"Failed to clear sessions: {e.message}")
            self._notify("Failed to clear chats", "negative")
            return False
        self.sessions = []
        self._notify("All chats cleared", "positive")
        self._changed()
        return True
