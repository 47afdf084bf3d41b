from __future__ import annotations

from typing import Optional


class GenSpecsError(Exception):
    """Base class for every error raised by the generation stack."""


class ConfigurationError(GenSpecsError):
    """Something the caller must configure first, e.g. a missing API key."""


class DocumentValidationError(GenSpecsError):
    """Missing project fields or an unmet document dependency."""


class CompletionError(GenSpecsError):
    """A completion request did not produce text."""

    retryable: bool = False


class TransportError(CompletionError):
    """Connection failure, timeout or cancelled request."""

    retryable = True

    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class ProviderError(CompletionError):
    """The provider answered with a non-2xx status."""

    def __init__(self, message: str, *, status_code: int, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.retryable = status_code == 504


class PersistenceError(GenSpecsError):
    """Persisted state could not be read back."""
