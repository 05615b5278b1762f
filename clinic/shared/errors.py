"""Domain errors raised by services and translated to HTTP responses in main.py"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def to_dict(self) -> dict:
        body = {"detail": self.message}
        if self.code:
            body["code"] = self.code
        return body


class ValidationError(SchedulingError):
    """Candidate time invalid, conflicting, or request otherwise malformed"""

    status_code = 400


class InvalidTransitionError(ValidationError):
    """Requested status change is not allowed from the current status"""

    def __init__(self, current: str, action: str):
        super().__init__(
            f"Cannot {action} an appointment in status '{current}'", code="invalid_transition"
        )
        self.current = current
        self.action = action


class NotFoundError(SchedulingError):
    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} not found", code="not_found")
        self.entity = entity
        self.entity_id = entity_id


class AuthorizationError(SchedulingError):
    status_code = 403

    def __init__(self, message: str = "Access denied: insufficient permissions"):
        super().__init__(message, code="forbidden")


class NotificationError(Exception):
    """Email/SMS transport failure. Never escapes the notification gateway."""
