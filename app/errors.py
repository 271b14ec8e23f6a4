"""Error taxonomy shared by every route.

Each error carries the HTTP status it maps to and renders the uniform
error envelope ``{"error": <message>, "details": <optional>}``.
"""
from typing import Any, Optional


class AppError(Exception):
    """Base class for all request-terminating failures."""

    code = "INTERNAL_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self) -> dict:
        """Render the error envelope."""
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class Unauthenticated(AppError):
    """No valid session."""

    code = "UNAUTHENTICATED"
    http_status = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class Forbidden(AppError):
    """Valid session, insufficient role or ownership."""

    code = "FORBIDDEN"
    http_status = 403

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class NotFound(AppError):
    """Target record does not exist."""

    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.resource_id = resource_id


class ValidationFailed(AppError):
    """Malformed input; details hold the ordered violation list."""

    code = "VALIDATION_FAILED"
    http_status = 400

    def __init__(self, violations: list[dict], message: str = "Invalid request data"):
        super().__init__(message, details=violations)
        self.violations = violations


class Conflict(AppError):
    """Duplicate creation of a unique record."""

    code = "CONFLICT"
    http_status = 409


class UpstreamFailure(AppError):
    """Store or external service failure. Never exposes internal detail."""

    code = "UPSTREAM_FAILURE"
    http_status = 500

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)
