"""FastAPI endpoints for the streaming chat service.

HTTP and streaming routes with async request handling.
Supports Server-Sent Events for real-time chat streaming.

Endpoints:
    - GET /health: Service health status
    - /sessions: Session CRUD and POST /sessions/verify visibility checks
    - POST /chat: Streamed chat completion for an existing session
"""

from streamchat.api.app import app, create_app

__all__ = ["app", "create_app"]
