from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for expected, caller-recoverable outcomes.

    Every subclass carries a stable ``kind`` and an HTTP status so the
    application layer can render a uniform error descriptor.
    """

    status_code: int = 400
    kind: str = "Error"
    default_message: str = "Request could not be completed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.kind, "message": self.message}


class ValidationError(AppError):
    status_code = 400
    kind = "ValidationError"
    default_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.errors:
            payload["errors"] = self.errors
        return payload


class WeakPassword(ValidationError):
    kind = "WeakPassword"
    default_message = "Password must contain uppercase, lowercase, number, and special character"


class Unauthenticated(AppError):
    status_code = 401
    kind = "Unauthenticated"
    default_message = "Please login to access this resource"


class InvalidCredentials(Unauthenticated):
    kind = "InvalidCredentials"
    default_message = "Invalid email or password"


class Forbidden(AppError):
    status_code = 403
    kind = "Forbidden"
    default_message = "Not enough permissions"


class NotFound(AppError):
    status_code = 404
    kind = "NotFound"
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    kind = "Conflict"
    default_message = "Request conflicts with the current state"


class DuplicateEmail(Conflict):
    kind = "DuplicateEmail"
    default_message = "User already exists with this email"


class EmailInUse(Conflict):
    kind = "EmailInUse"
    default_message = "Email already in use"


class AlreadyCancelled(Conflict):
    kind = "AlreadyCancelled"
    default_message = "Appointment is already cancelled"


class LastAdminProtected(Conflict):
    kind = "LastAdminProtected"
    default_message = "Cannot remove the last active admin account"


class StorageError(AppError):
    status_code = 500
    kind = "StorageError"
    default_message = "Failed to persist data"


class UpstreamNotificationError(AppError):
    """Raised inside the notification dispatcher; never leaves it."""

    status_code = 502
    kind = "UpstreamNotificationError"
    default_message = "Notification delivery failed"
