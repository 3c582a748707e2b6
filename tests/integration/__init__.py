"""Integration tests for components working together as a system.

Coverage:
    - /sessions CRUD and verification endpoints
    - /chat SSE streaming, including error frames
    - Full chat workflow from the orchestrator down to SQLite

The LLM is scripted except in tests marked as requiring an API key.
"""
