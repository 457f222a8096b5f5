"""Exception types raised by the order and billing core."""

from __future__ import annotations


class TablesideError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(TablesideError, ValueError):
    """Input rejected locally, before any request is made."""


class TransitionError(ValidationError):
    """An order or order item cannot move to the requested status."""

    def __init__(self, message: str, *, current: str, target: str) -> None:
        super().__init__(message)
        self.current = current
        self.target = target


class InFlightError(TablesideError):
    """A mutating request for the same flow is still outstanding."""


class SubmissionLockedError(TablesideError):
    """Send to Kitchen is inside its post-success cool-down window."""

    def __init__(self, remaining_seconds: float) -> None:
        super().__init__(f"Submit disabled for another {remaining_seconds:.1f}s")
        self.remaining_seconds = remaining_seconds


class ApiClientError(TablesideError):
    """A request to the backend failed at transport or business level."""

    def __init__(self, message: str, status: int, code: str, is_retryable: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.is_retryable = is_retryable

    def __repr__(self) -> str:
        return f"ApiClientError(status={self.status}, code={self.code!r}, message={self.message!r})"
