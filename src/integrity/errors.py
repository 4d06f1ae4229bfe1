"""Error taxonomy for the integrity engine.

Expected business outcomes (a user with no active ban, an appeal that was
already reviewed) are returned as ``Outcome`` values carrying a typed
``Failure``. Exceptions are reserved for malformed input; database
problems come back as ``infrastructure`` failures.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Kinds of failure an integrity operation can report."""

    USER_NOT_FOUND = "user_not_found"
    NO_ACTIVE_BAN = "no_active_ban"
    NO_APPEALABLE_BAN = "no_appealable_ban"
    APPEAL_NOT_FOUND = "appeal_not_found"
    LINK_NOT_FOUND = "link_not_found"
    EVENT_NOT_FOUND = "event_not_found"
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    INFRASTRUCTURE = "infrastructure"

    @property
    def status_code(self) -> int:
        """HTTP status class the admin surface should use for this kind."""
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.USER_NOT_FOUND: 404,
    ErrorKind.NO_ACTIVE_BAN: 404,
    ErrorKind.NO_APPEALABLE_BAN: 404,
    ErrorKind.APPEAL_NOT_FOUND: 404,
    ErrorKind.LINK_NOT_FOUND: 404,
    ErrorKind.EVENT_NOT_FOUND: 404,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INFRASTRUCTURE: 503,
}


@dataclass(frozen=True)
class Failure:
    """A typed, human-readable failure."""

    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a mutating operation: either a value or a failure."""

    value: T | None = None
    error: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Outcome[T]":
        return cls(error=Failure(kind=kind, message=message))


class IntegrityEngineError(Exception):
    """Base class for integrity engine exceptions."""

    pass


class ValidationError(IntegrityEngineError):
    """Raised when input has the wrong shape (e.g. a malformed ban duration)."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

