"""
Purpose: Error taxonomy for the matching & lifecycle engine.
What it does:
Every failure the engine surfaces to a caller is one of these classes.
The HTTP layer maps them to status codes in exactly one place
(backend/api/exceptions.py); the engine itself never deals in HTTP.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base class for all engine errors."""

    status_code = 500
    code = "engine_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.message, "code": self.code}
        payload.update(self.details)
        return payload


class ValidationError(EngineError):
    """Malformed or out-of-range input. Never retried."""

    status_code = 400
    code = "validation_error"


class NotFoundError(EngineError):
    """A ride, driver or position does not exist."""

    status_code = 404
    code = "not_found"


class ForbiddenError(EngineError):
    """The actor is not a party allowed to perform the action on this ride."""

    status_code = 403
    code = "forbidden"


class ConflictError(EngineError):
    """
    Lost a race against a concurrent writer (e.g. two drivers accepting).
    The caller may retry against the new state.
    """

    status_code = 409
    code = "conflict"


class InvalidTransitionError(EngineError):
    """
    The requested action is not legal from the ride's current status.
    Carries the current status so clients can resynchronise.
    """

    status_code = 400
    code = "invalid_transition"

    def __init__(self, action: str, current_status: Any, message: Optional[str] = None):
        status_value = getattr(current_status, "value", current_status)
        super().__init__(
            message or f"Cannot {action} a ride that is {status_value}",
            action=action,
            current_status=status_value,
        )
        self.action = action
        self.current_status = status_value
