"""Test package for streamchat.

Unit tests cover isolated logic; integration tests drive the FastAPI app
through ASGI transport, end to end where useful.

Structure:
    - unit/: Individual function and class tests
    - integration/: API and full-stack workflow tests

Uses in-process stores and a scripted completion provider; live LLM tests
run only when an API key is configured.
Leverages pytest with pytest-check for soft assertions.
"""
