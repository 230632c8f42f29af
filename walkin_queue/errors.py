"""Shared error types and the error envelope.

Rejected operations are silent by default. When rejection notices are
enabled, the originating client gets an `ErrorResponse` and nobody else does.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Rejection reason codes.
MALFORMED_MESSAGE = "malformed_message"
UNKNOWN_OPERATION = "unknown_operation"
EMPTY_NAME = "empty_name"
EMPTY_QUEUE = "empty_queue"
UNKNOWN_ID = "unknown_id"
OUT_OF_RANGE = "out_of_range"
INVALID_IMPORT = "invalid_import"

REASON_MESSAGES = {
    MALFORMED_MESSAGE: "Message is not a JSON object with a type",
    UNKNOWN_OPERATION: "Unsupported operation type",
    EMPTY_NAME: "Name is empty after normalization",
    EMPTY_QUEUE: "Queue is empty",
    UNKNOWN_ID: "No entry with that id",
    OUT_OF_RANGE: "Move target is outside the queue",
    INVALID_IMPORT: "Import data must contain a queue list of objects",
}


class QueueServiceError(Exception):
    """Base class for errors raised by this package."""


class ConfigError(QueueServiceError):
    """Invalid configuration detected at startup."""


class OperationRejected(QueueServiceError):
    """The server sent a rejection notice for our operation."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    @classmethod
    def for_reason(cls, code: str) -> "ErrorResponse":
        return cls(code, REASON_MESSAGES.get(code, code))

    def to_message(self, *, op_type: str | None = None) -> dict[str, Any]:
        msg: dict[str, Any] = {"type": "error", "code": self.code, "message": self.message}
        if op_type is not None:
            msg["op"] = op_type
        return msg
