"""
Shared error types for chatrelay services.
"""

from __future__ import annotations

from enum import Enum


class ValidationIssue(ValueError):
    def __init__(
        self,
        message: str,
        field: str = "unknown",
        error_type: str = "invalid",
    ):
        super().__init__(message)
        self.field = field
        self.error_type = error_type


class AuthError(Exception):
    """Raised for missing, invalid or expired credentials."""


class ConflictError(Exception):
    """Raised when a write would overwrite an existing unique record."""


class NotFoundError(LookupError):
    pass


class StorageError(RuntimeError):
    """Raised when the storage layer fails transiently."""


class StorageUnavailable(RuntimeError):
    """Raised when an operation needs storage that is not configured."""

    def __init__(self, message: str = "Memory storage is not configured on this server"):
        super().__init__(message)


class ModelFailure(str, Enum):
    bad_credentials = "bad_credentials"
    quota_exceeded = "quota_exceeded"
    connectivity = "connectivity"
    model_unavailable = "model_unavailable"
    unknown = "unknown"

    @property
    def user_message(self) -> str:
        return MODEL_FAILURE_MESSAGES[self]


MODEL_FAILURE_MESSAGES = {
    ModelFailure.bad_credentials: "AI service is misconfigured: the API key was rejected.",
    ModelFailure.quota_exceeded: "AI service quota exceeded. Please try again later.",
    ModelFailure.connectivity: "Could not reach the AI service. Please check your connection and try again.",
    ModelFailure.model_unavailable: "AI service not available right now.",
    ModelFailure.unknown: "AI service error. Please try again.",
}
