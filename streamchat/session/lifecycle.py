"""Session creation and read-after-write verification.

Stores may lag between a write and the first read that sees it (replicas,
caches, or a remote API in front of the store). This module hides that lag
behind bounded retry loops:

- ``resolve`` re-reads an existing session a few times with a fixed delay.
- ``create_and_verify`` creates a session and polls with exponential
  backoff until the new record is readable.

Every wait honours an ``asyncio.Event`` cancel signal. A cancelled wait
raises ``ChatError(kind=CANCELLED)`` immediately and never resumes.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace

from streamchat.config import Settings
from streamchat.errors import ChatError, ErrorKind
from streamchat.models.schemas import ChatSession, Message
from streamchat.storage.base import SessionStore

logger = logging.getLogger(__name__)

SleepFn = Callable[[float, asyncio.Event | None], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and the wait between consecutive attempts.

    The wait after failed attempt ``n`` (0-based) is
    ``min(base_delay * multiplier**n, max_delay)``.
    """

    attempts: int
    base_delay: float
    multiplier: float = 1.0
    max_delay: float | None = None

    def delay_after(self, attempt: int) -> float:
        delay = self.base_delay * (self.multiplier**attempt)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def schedule(self) -> list[float]:
        """Waits between attempts, in order (one fewer than ``attempts``)."""
        return [self.delay_after(n) for n in range(self.attempts - 1)]


RESOLVE_POLICY = RetryPolicy(attempts=3, base_delay=0.1)
VERIFY_POLICY = RetryPolicy(attempts=5, base_delay=0.2, multiplier=2.0, max_delay=1.0)


async def cancellable_sleep(delay: float, cancel: asyncio.Event | None = None) -> None:
    """Sleep for ``delay`` seconds unless ``cancel`` is set first.

    Raises:
        ChatError: CANCELLED if the signal is (or becomes) set.
    """
    if cancel is None:
        await asyncio.sleep(delay)
        return
    if cancel.is_set():
        raise ChatError.cancelled()
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except TimeoutError:
        return
    raise ChatError.cancelled()


def _check_cancelled(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise ChatError.cancelled()


class SessionLifecycle:
    """Creates sessions and masks store visibility lag."""

    def __init__(
        self,
        store: SessionStore,
        resolve_policy: RetryPolicy = RESOLVE_POLICY,
        verify_policy: RetryPolicy = VERIFY_POLICY,
        sleep: SleepFn = cancellable_sleep,
    ) -> None:
        self._store = store
        self._resolve_policy = resolve_policy
        self._verify_policy = verify_policy
        self._sleep = sleep

    @classmethod
    def from_settings(cls, store: SessionStore, settings: Settings) -> "SessionLifecycle":
        return cls(
            store,
            resolve_policy=RetryPolicy(
                attempts=settings.resolve_attempts,
                base_delay=settings.resolve_delay,
            ),
            verify_policy=RetryPolicy(
                attempts=settings.verify_attempts,
                base_delay=settings.verify_base_delay,
                multiplier=2.0,
                max_delay=settings.verify_max_delay,
            ),
        )

    @property
    def store(self) -> SessionStore:
        return self._store

    async def resolve(
        self,
        session_id: str,
        cancel: asyncio.Event | None = None,
        attempts: int | None = None,
    ) -> ChatSession | None:
        """Read a session, retrying while it is not yet visible.

        Args:
            session_id: Session to read.
            cancel: Optional cancel signal checked before every read and wait.
            attempts: Override the attempt budget (``1`` for a single check).

        Returns:
            The session, or None once every attempt came back empty.

        Raises:
            ChatError: CANCELLED on cancellation; STORE_UNAVAILABLE from the store.
        """
        policy = self._resolve_policy
        if attempts is not None:
            policy = replace(policy, attempts=attempts)

        for attempt in range(policy.attempts):
            _check_cancelled(cancel)
            session = await self._store.get(session_id)
            if session is not None:
                return session
            logger.info(f"Session {session_id} not found, attempt {attempt + 1}/{policy.attempts}")
            if attempt < policy.attempts - 1:
                await self._sleep(policy.delay_after(attempt), cancel)

        logger.warning(f"Session not found after {policy.attempts} attempts: {session_id}")
        return None

    async def create_and_verify(
        self,
        title: str,
        seed_message: Message | None = None,
        cancel: asyncio.Event | None = None,
        owner_id: str | None = None,
    ) -> ChatSession:
        """Create a session and wait until a read returns it.

        Returns:
            The session as read back from the store.

        Raises:
            ChatError: VERIFICATION_TIMEOUT if the session never became
                visible (it was still written), CANCELLED on cancellation,
                or whatever ``store.create`` raised.
        """
        _check_cancelled(cancel)
        created = await self._store.create(title, seed_message, owner_id)
        policy = self._verify_policy
        logger.info(f"Verifying session availability: {created.id}")

        for attempt in range(policy.attempts):
            _check_cancelled(cancel)
            try:
                visible = await self._store.get(created.id)
            except ChatError as e:
                if e.kind == ErrorKind.CANCELLED:
                    raise
                logger.warning(
                    f"Session verification attempt {attempt + 1}/{policy.attempts} failed: {e.message}"
                )
                visible = None

            if visible is not None:
                logger.info(f"Session verified: {created.id}")
                return visible
            if attempt < policy.attempts - 1:
                await self._sleep(policy.delay_after(attempt), cancel)

        logger.error(f"Session {created.id} not visible after {policy.attempts} attempts")
        raise ChatError(
            ErrorKind.VERIFICATION_TIMEOUT,
            "Session verification failed after multiple attempts. Please try again.",
            details={"sessionId": created.id, "attempts": policy.attempts},
        )
