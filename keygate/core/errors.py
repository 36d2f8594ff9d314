"""Error types shared by the key backend, the rate limiter and both listeners.

Every error carries a stable ``code`` for logs. Public responses never echo
``message`` or ``details``; the admin listener returns ``message`` as is.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Log-only context attached to an error."""

    keyname: str
    operation: str
    attempts: int
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error.

    Attributes:
        code: Machine-readable error code, e.g. ``backend_timeout``.
        message: Human-readable description.
        details: Extra fields for the log line.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Input or configuration was rejected."""


class BackendAppError(AppError):
    """A key backend capability failed or timed out."""


class KeyNotFoundAppError(BackendAppError):
    """The key name is unknown to the backend."""


class RateLimitStoreError(AppError):
    """The bucket store could not record an admission decision."""
