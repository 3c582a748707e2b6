"""Session CRUD and visibility check endpoints."""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from streamchat.api.deps import get_store
from streamchat.api.responses import success_response
from streamchat.errors import ChatError
from streamchat.models.schemas import (
    CreateSessionRequest,
    UpdateSessionRequest,
    VerifySessionRequest,
    VerifySessionResult,
)
from streamchat.storage.base import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("")
async def list_sessions(store: SessionStore = Depends(get_store)) -> JSONResponse:
    """List all sessions, most recently updated first."""
    sessions = await store.list_all()
    return success_response([s.to_wire() for s in sessions])


@router.post("")
async def create_session(
    body: CreateSessionRequest,
    store: SessionStore = Depends(get_store),
) -> JSONResponse:
    """Create a session with an optional first message.

    Returns:
        201 with the stored session.
    """
    session = await store.create(body.title, body.first_message)
    return success_response(session.to_wire(), status.HTTP_201_CREATED)


@router.delete("")
async def clear_sessions(store: SessionStore = Depends(get_store)) -> JSONResponse:
    """Delete every session."""
    await store.delete_all()
    return success_response({"message": "All sessions cleared successfully"})


@router.post("/verify")
async def verify_session(
    body: VerifySessionRequest,
    store: SessionStore = Depends(get_store),
) -> JSONResponse:
    """Report whether a session is currently readable.

    Always 200; a missing session is ``exists: false`` rather than 404.
    """
    session = await store.get(body.session_id)
    total = len(await store.list_all())
    logger.debug(f"Session verification for {body.session_id}: {'found' if session else 'not found'}")
    result = VerifySessionResult(exists=session is not None, session=session, total_sessions=total)
    return success_response(result.to_wire())


@router.get("/{session_id}")
async def get_session(session_id: str, store: SessionStore = Depends(get_store)) -> JSONResponse:
    """Fetch one session."""
    session = await store.get(session_id)
    if session is None:
        raise ChatError.not_found("Session")
    return success_response(session.to_wire())


@router.patch("/{session_id}")
async def update_session(
    session_id: str,
    body: UpdateSessionRequest,
    store: SessionStore = Depends(get_store),
) -> JSONResponse:
    """Replace the title and/or message list of an existing session.

    Writes to a deleted session are rejected with 404; the session is not
    recreated.
    """
    session = await store.update(session_id, title=body.title, messages=body.messages)
    if session is None:
        raise ChatError.not_found("Session")
    return success_response(session.to_wire())


@router.delete("/{session_id}")
async def delete_session(session_id: str, store: SessionStore = Depends(get_store)) -> JSONResponse:
    """Delete one session."""
    if not await store.delete(session_id):
        raise ChatError.not_found("Session")
    return success_response({"message": "Session deleted successfully"})
