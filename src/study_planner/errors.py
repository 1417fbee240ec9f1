"""Typed errors shared across the planner."""

from __future__ import annotations

__all__ = [
    "PlannerError",
    "ValidationError",
    "NotFoundError",
    "NoContextError",
    "GenerationFailedError",
    "PersistenceError",
    "ConfigError",
    "WorkspaceError",
    "SERVICE_ERROR",
    "INVALID_OUTPUT",
]


SERVICE_ERROR = "service-error"
INVALID_OUTPUT = "invalid-output"


class PlannerError(RuntimeError):
    """Base class for recoverable planner failures."""


class ValidationError(PlannerError):
    """Raised when input has the wrong shape; no state is changed."""


class NotFoundError(PlannerError):
    """Raised when a subject, topic, attachment or session id is unknown."""


class NoContextError(PlannerError):
    """Raised when a quiz is requested for a topic without attachments."""


class GenerationFailedError(PlannerError):
    """The content service failed or returned unusable output.

    ``reason`` is :data:`SERVICE_ERROR` when the call itself failed and
    :data:`INVALID_OUTPUT` when the response did not pass validation.
    """

    def __init__(self, message: str, *, reason: str = INVALID_OUTPUT) -> None:
        super().__init__(message)
        self.reason = reason

    @property
    def user_message(self) -> str:
        if self.reason == SERVICE_ERROR:
            return "Failed to contact the quiz service."
        return "The quiz service returned unusable output for this content."


class PersistenceError(PlannerError):
    """Raised or recorded when the content tree cannot be loaded or saved."""


class ConfigError(PlannerError):
    """Raised when configuration parsing or validation fails."""


class WorkspaceError(PlannerError):
    """Raised when the workspace layout cannot be prepared."""
