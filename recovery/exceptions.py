"""Recovery SDK exception hierarchy."""

from __future__ import annotations


class RecoveryError(Exception):
    """Base class for all recovery-specific exceptions."""


class RecoveryServiceUnavailableError(RecoveryError):
    """Raised when the recovery service cannot be reached."""


class RecoveryServiceResponseError(RecoveryError):
    """Raised when the recovery service rejects a request or returns malformed data."""

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        """Initialize with optional HTTP status code context."""
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class RecoveryServiceUnreachableError(RecoveryServiceUnavailableError):
    """Raised when no connection to the recovery host could be opened."""
