"""Typed errors raised by the booking core.

Every lifecycle failure is one of the kinds below so callers can branch on the
class (or ``kind``) instead of matching message text.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    ALREADY_CANCELLED = "already_cancelled"
    TOO_LATE = "too_late"
    INVALID_TRANSITION = "invalid_transition"
    STORE_UNAVAILABLE = "store_unavailable"


class BookingError(Exception):
    kind: ErrorKind
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    kind = ErrorKind.VALIDATION
    status_code = 400


class NotFoundError(BookingError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class ConflictError(BookingError):
    kind = ErrorKind.CONFLICT
    status_code = 409


class AlreadyCancelledError(BookingError):
    kind = ErrorKind.ALREADY_CANCELLED
    status_code = 409


class TooLateError(BookingError):
    kind = ErrorKind.TOO_LATE
    status_code = 409


class InvalidTransitionError(BookingError):
    kind = ErrorKind.INVALID_TRANSITION
    status_code = 409


class StoreUnavailableError(BookingError):
    kind = ErrorKind.STORE_UNAVAILABLE
    status_code = 503


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or the ``BookingError`` that prevented it."""

    value: Optional[T] = None
    error: Optional[BookingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def capture(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Outcome[T]:
    try:
        return Outcome(value=fn(*args, **kwargs))
    except BookingError as exc:
        return Outcome(error=exc)
