"""Session lifecycle: creation plus read-after-write verification."""

from streamchat.session.lifecycle import (
    RESOLVE_POLICY,
    VERIFY_POLICY,
    RetryPolicy,
    SessionLifecycle,
    cancellable_sleep,
)

__all__ = [
    "RESOLVE_POLICY",
    "VERIFY_POLICY",
    "RetryPolicy",
    "SessionLifecycle",
    "cancellable_sleep",
]
