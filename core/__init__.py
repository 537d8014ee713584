"""
Shared plumbing used by every engine package.

Public API:
- Error taxonomy: EngineError, ValidationError, NotFoundError, ForbiddenError,
  ConflictError, InvalidTransitionError
- Clock helpers: utc_now, Clock
- PeriodicTask for background sweeps
"""
from .errors import (
    EngineError,
    ValidationError,
    NotFoundError,
    ForbiddenError,
    ConflictError,
    InvalidTransitionError,
)
from .clock import Clock, utc_now
from .sweeper import PeriodicTask

__all__ = [
    "EngineError",
    "ValidationError",
    "NotFoundError",
    "ForbiddenError",
    "ConflictError",
    "InvalidTransitionError",
    "Clock",
    "utc_now",
    "PeriodicTask",
]
