"""Error taxonomy shared by the server and the client.

A single exception type carries a ``kind`` tag. Callers branch on
``error.kind`` rather than on exception subclasses, and the HTTP layer maps
each kind to a status code and a wire ``code``.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure categories surfaced by the chat pipeline."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    VERIFICATION_TIMEOUT = "verification_timeout"
    PROVIDER_STREAM = "provider_stream"
    TRANSPORT = "transport"
    STORE_UNAVAILABLE = "store_unavailable"
    CANCELLED = "cancelled"
    INTERNAL = "internal"

    @property
    def code(self) -> str:
        """Wire-level error code used in envelopes and stream frames."""
        return _CODES[self]

    @property
    def status_code(self) -> int:
        """HTTP status code for this kind."""
        return _STATUS_CODES[self]

    @classmethod
    def from_code(cls, code: str | None) -> "ErrorKind":
        """Map a wire code back to its kind (unknown codes become INTERNAL)."""
        for kind, kind_code in _CODES.items():
            if kind_code == code:
                return kind
        return cls.INTERNAL


_CODES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "VALIDATION_ERROR",
    ErrorKind.NOT_FOUND: "NOT_FOUND",
    ErrorKind.VERIFICATION_TIMEOUT: "VERIFICATION_FAILED",
    ErrorKind.PROVIDER_STREAM: "AI_ERROR",
    ErrorKind.TRANSPORT: "NETWORK_ERROR",
    ErrorKind.STORE_UNAVAILABLE: "STORE_ERROR",
    ErrorKind.CANCELLED: "CANCELLED",
    ErrorKind.INTERNAL: "INTERNAL_ERROR",
}

_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VERIFICATION_TIMEOUT: 500,
    ErrorKind.PROVIDER_STREAM: 500,
    ErrorKind.TRANSPORT: 500,
    ErrorKind.STORE_UNAVAILABLE: 500,
    # Client closed request; never rendered to users
    ErrorKind.CANCELLED: 499,
    ErrorKind.INTERNAL: 500,
}


class ChatError(Exception):
    """Tagged failure raised anywhere in the chat pipeline.

    Attributes:
        kind: Failure category used for dispatch.
        message: Human-readable description.
        details: Optional structured context (e.g. field errors).
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @classmethod
    def validation(cls, message: str, details: Any | None = None) -> "ChatError":
        return cls(ErrorKind.VALIDATION, message, details)

    @classmethod
    def not_found(cls, resource: str = "Resource") -> "ChatError":
        return cls(ErrorKind.NOT_FOUND, f"{resource} not found")

    @classmethod
    def cancelled(cls, message: str = "Operation cancelled") -> "ChatError":
        return cls(ErrorKind.CANCELLED, message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the ``error`` member of the response envelope."""
        body: dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"ChatError(kind={self.kind.value!r}, message={self.message!r})"


def format_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Reduce pydantic error dicts to JSON-serializable ``details`` entries."""
    return [
        {
            "loc": list(error.get("loc", [])),
            "msg": str(error.get("msg", "Validation error")),
            "type": error.get("type", "value_error"),
        }
        for error in errors
    ]
