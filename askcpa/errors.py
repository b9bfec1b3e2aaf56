from __future__ import annotations
"""
AskCPA — Error Taxonomy
========================
Domain errors raised by the store adapter, lifecycle engine and session gate.
main.py maps each one to an HTTP status.
"""


class AskCPAError(Exception):
    """Base class for every error the question workflow raises on purpose."""

    status_code = 500
    public_message = "Failed to process request"

    def to_dict(self) -> dict:
        return {"error": self.public_message}


class ValidationError(AskCPAError):
    """Malformed input, detected before any store write."""

    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message

    def to_dict(self) -> dict:
        return {"error": "validation_error", "field": self.field, "message": self.message}


class NotFoundError(AskCPAError):
    status_code = 404

    def __init__(self, question_id: str):
        super().__init__(f"Question {question_id} not found")
        self.question_id = question_id

    def to_dict(self) -> dict:
        return {"error": "Question not found", "id": self.question_id}


class PersistenceError(AskCPAError):
    """Record store read/write failure. Detail is logged, never returned."""

    status_code = 500
    public_message = "Failed to process request"


class ConfigurationError(AskCPAError):
    """A required secret or endpoint is missing."""

    status_code = 500
    public_message = "System not configured"


class NotificationError(AskCPAError):
    """Notification sink gave up. Only ever logged."""

    def __init__(self, to: str, template: str, attempts: int):
        super().__init__(f"{template} to {to} failed after {attempts} attempt(s)")
        self.to = to
        self.template = template
        self.attempts = attempts
