"""NiceGUI chat client.

Responsibilities:
    - Optimistic rendering of the user's message and the streamed reply
    - Session creation with read-after-write verification before the first turn
    - Cancellation of the in-flight turn (stop button, page disconnect)
    - Sidebar session management: load, rename, delete, clear all

All storage and generation go through the HTTP API; ``ChatApiClient`` is the
only module here that talks to the network.
"""

from streamchat.ui.client import ChatApiClient, error_from_response
from streamchat.ui.orchestrator import ChatOrchestrator, TurnOutcome, derive_title

__all__ = [
    "ChatApiClient",
    "ChatOrchestrator",
    "TurnOutcome",
    "derive_title",
    "error_from_response",
]
