"""Domain errors raised by the stores and rendered by the API layer.

Every error carries a wire-level ``code`` and an HTTP ``status_code`` so
route handlers can let them propagate; ``create_app`` installs a handler
that turns them into ``{"error": code, "message": ...}`` responses.
"""
from __future__ import annotations


class BizbookError(Exception):
    code = "error"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, object]:
        return {"error": self.code, "message": self.message}


class ValidationError(BizbookError):
    """Malformed or missing input; ``details`` lists field-level messages."""

    code = "invalid_payload"
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, details: list[dict[str, str]] | None = None) -> None:
        super().__init__(message)
        self.details = details or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, details=[{"field": field, "message": message}])

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        if self.details:
            payload["details"] = self.details
        return payload


class PastDateError(ValidationError):
    code = "past_date"
    default_message = "Cannot book appointments in the past"


class InvalidStatus(ValidationError):
    code = "invalid_status"
    default_message = "Invalid status"


class IncorrectPassword(ValidationError):
    code = "incorrect_password"
    default_message = "Current password is incorrect"


class NotFound(BizbookError):
    code = "not_found"
    status_code = 404
    default_message = "Resource not found"


class Conflict(BizbookError):
    code = "conflict"
    status_code = 409
    default_message = "Conflicting resource"


class DuplicateAccount(Conflict):
    code = "duplicate_account"
    default_message = "An account with this email already exists"


class DuplicateService(Conflict):
    code = "duplicate_service"
    default_message = "Service with this name already exists"


class SlotUnavailable(Conflict):
    code = "slot_unavailable"
    default_message = "Selected time slot is not available"


class InvalidTransition(BizbookError):
    code = "invalid_transition"
    default_message = "Status change is not allowed"


class AlreadyCompleted(InvalidTransition):
    code = "already_completed"
    default_message = "Cannot cancel completed booking"


class AuthError(BizbookError):
    code = "unauthorized"
    status_code = 401
    default_message = "Authentication required"


class InvalidCredentials(AuthError):
    default_message = "Invalid email or password"


class InvalidToken(AuthError):
    default_message = "Invalid or expired token"


class Forbidden(BizbookError):
    code = "forbidden"
    status_code = 403
    default_message = "Business owner access required"
