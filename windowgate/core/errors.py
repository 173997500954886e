"""Application-level exception types.

Every failure the limiter can surface is an ``AppError`` subclass so the HTTP
layer (and any other caller) can map kinds to behaviour without inspecting
messages:

- ``ValidationAppError`` family: programmer errors (bad configuration, blank
  identifier). Never retried, never swallowed.
- ``StoreAppError`` family: the counter store could not be used. The caller
  picks fail-open or fail-closed; the limiter never decides on its own.
- ``AuthenticationAppError``: admin credentials missing or wrong.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    field: str
    actual_value: Any
    operation: str
    key_hash: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class InvalidConfigurationError(ValidationAppError):
    """Raised when quota, window or namespace are rejected at construction."""


class InvalidArgumentError(ValidationAppError):
    """Raised when an operation receives a blank identifier."""


class StoreAppError(AppError):
    """Base for counter store failures surfaced to the caller."""


class StoreUnavailableError(StoreAppError):
    """Raised when the store reports itself not ready before a round-trip."""


class StoreOperationError(StoreAppError):
    """Raised when a round-trip to the store fails (timeout, transport, protocol)."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""
