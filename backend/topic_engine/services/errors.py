"""
Typed engine errors. Every failure is deterministic and caller-facing: the engine rolls back
and re-raises; the HTTP layer maps status_code / code / details onto the response.
"""
from typing import Any


class TopicEngineError(Exception):
    status_code = 500
    default_code = "TOPIC_ENGINE_ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"status": "error", "message": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class InvalidInput(TopicEngineError):
    """Missing or malformed field (title, content, decision, group/alignment payload)."""
    status_code = 400
    default_code = "TOPIC_INVALID_INPUT"


class NotFound(TopicEngineError):
    status_code = 404
    default_code = "TOPIC_NOT_FOUND"


class InvalidState(TopicEngineError):
    """Operation not allowed in the version's current status."""
    status_code = 409
    default_code = "TOPIC_INVALID_STATUS"

    def __init__(self, message: str, *, topic_id, status: str, attempted: str, code: str | None = None):
        super().__init__(
            f"{message}; current status is {status}",
            code=code,
            details={"topic_id": str(topic_id), "status": status, "attempted": attempted},
        )
        self.topic_id = topic_id
        self.status = status
        self.attempted = attempted


class Conflict(TopicEngineError):
    """A concurrent change moved the latest pointer; caller may re-fetch and retry."""
    status_code = 409
    default_code = "TOPIC_CONFLICT"
