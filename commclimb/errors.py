"""Exception types and the result type for rejected user actions."""

from dataclasses import dataclass
from typing import Any, Optional


class CommClimbError(Exception):
    """Base class for CommClimb errors."""


class AuthError(CommClimbError):
    """Bad credentials or duplicate registration."""


class ValidationError(CommClimbError):
    """Malformed note fields or request data."""


class TranscriptionFailure(CommClimbError):
    """The transcription gateway could not produce a transcript.

    Quota, invalid media, timeouts and malformed responses all collapse here.
    """


class TranscriptStateError(CommClimbError):
    """A transcript was attached to a project that is not transcribing."""


@dataclass
class Outcome:
    """Result of a user action that may be rejected.

    ``ok`` is False when the action was refused; ``reason`` says why.
    """

    ok: bool
    value: Any = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def rejected(cls, reason: str) -> "Outcome":
        return cls(ok=False, reason=reason)

    def __bool__(self) -> bool:
        return self.ok
