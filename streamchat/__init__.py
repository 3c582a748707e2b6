"""Streamchat - persistent chat sessions with streamed LLM replies.

Combines FastAPI for HTTP streaming, SQLAlchemy for session storage,
Gemini or Agno/OpenAI for completions, NiceGUI for the chat client,
and Pydantic for data validation.

Components:
    - api: HTTP endpoints and the SSE chat route
    - relay: Turn validation and provider-to-SSE framing
    - session: Session resolution and read-after-write verification
    - storage: Session store backends
    - provider: LLM completion backends
    - ui: Web interface and its API client
    - models: Wire and domain schemas
"""

__version__ = "0.1.0"
