"""Exception hierarchy for Diff Digest.

Every error the streaming core can surface to a consumer derives from
DiffDigestError and carries the ErrorKind used on published snapshots.
"""

from __future__ import annotations

from diffdigest.schemas.streaming import ErrorKind, NotesError


class DiffDigestError(Exception):
    """Base exception for all application-specific errors."""

    kind: ErrorKind = ErrorKind.PROVIDER

    def to_notes_error(self) -> NotesError:
        """Convert to the NotesError attached to a snapshot."""
        return NotesError(kind=self.kind, message=str(self))


class TransportError(DiffDigestError):
    """Network or stream failure after generation started."""

    kind = ErrorKind.TRANSPORT


class ProviderRequestError(DiffDigestError):
    """The provider rejected the generation request before streaming."""

    kind = ErrorKind.PROVIDER

    def __init__(self, message: str, *, status_code: int = 500, details: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(ProviderRequestError):
    """Provider credentials are missing or invalid (401)."""

    kind = ErrorKind.AUTHENTICATION


class RateLimitError(ProviderRequestError):
    """Provider rate limit exceeded (429)."""

    kind = ErrorKind.RATE_LIMIT


class InvalidRequestError(ProviderRequestError):
    """The provider refused the request as malformed (400)."""

    kind = ErrorKind.INVALID_REQUEST


class MalformedFinalObject(DiffDigestError):
    """Stream ended but the accumulated text never parsed as notes."""

    kind = ErrorKind.MALFORMED_FINAL_OBJECT


class TruncatedEncoding(DiffDigestError):
    """Byte stream ended in the middle of a multi-byte character."""

    kind = ErrorKind.TRUNCATED_ENCODING


class SourceError(DiffDigestError):
    """The change source could not list or read changes."""

    kind = ErrorKind.SOURCE


_STATUS_ERRORS: dict[int, tuple[type[ProviderRequestError], str]] = {
    401: (AuthenticationError, "Authentication error. Please check your API key."),
    429: (RateLimitError, "Rate limit exceeded. Please try again later."),
    400: (InvalidRequestError, "Invalid request to the language model provider."),
}


def classify_status(
    status_code: int, details: str = "", message: str | None = None,
) -> ProviderRequestError:
    """Map a provider response status to the matching request error.

    Args:
        status_code: HTTP-style status returned by the provider.
        details: Raw detail text from the provider, kept for display.
        message: Overrides the default message for the status.

    Returns:
        An (unraised) ProviderRequestError subclass instance.
    """
    cls, default = _STATUS_ERRORS.get(
        status_code,
        (ProviderRequestError, "Failed to generate release notes."),
    )
    return cls(message or default, status_code=status_code, details=details)
