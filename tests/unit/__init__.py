"""Unit tests for individual components in isolation.

Coverage:
    - models/: Pydantic validation and camelCase wire format
    - storage/: Memory and SQLite session stores
    - session/: Resolve retries and create-then-verify backoff
    - relay/: Input validation and SSE framing
    - provider/: History translation with SDK clients patched
    - ui/: Client-side turn orchestration and cancellation

Follows single responsibility per test function. Leverages pytest-check for
multiple assertions per test.
"""
