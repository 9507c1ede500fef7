"""
Defines custom exceptions for the application to allow for more specific error handling.

Each exception carries a ``retryable`` flag which the download queue uses to
decide whether a failed job goes back into the pending queue or is marked failed.
"""

import asyncio

import aiohttp


class F1tvDlError(Exception):
    """Base exception for all application-specific errors."""

    retryable = False


class InvalidURLError(F1tvDlError):
    """Raised when a URL does not point at downloadable F1TV content."""


class AuthExhaustedError(F1tvDlError):
    """Raised when every token acquisition strategy has failed."""

    def __init__(self, attempted: list[str]):
        self.attempted = attempted
        tried = ", ".join(attempted) if attempted else "none applicable"
        super().__init__(
            f"All authentication strategies failed (tried: {tried}). "
            "Please check your credentials or provide a manual token file."
        )


class RateLimitedError(F1tvDlError):
    """Raised when the F1TV API answers with HTTP 429."""

    retryable = True

    def __init__(self, message: str = "Rate limited by F1TV.", retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class TransientTransportError(F1tvDlError):
    """Raised for network failures and timeouts that are worth retrying."""

    retryable = True


class TokenRejectedError(TransientTransportError):
    """Raised when the API answers 401/403 to a request carrying a token."""


class TrackNotFoundError(F1tvDlError):
    """Raised when no track or channel matches the requested selection."""


class UnsupportedContentError(F1tvDlError):
    """Raised when the requested selection is not possible for this content."""


class MuxerFailureError(F1tvDlError):
    """Raised when the ffmpeg process exits with an error."""

    retryable = True


class ConfigurationError(F1tvDlError):
    """Raised for issues related to configuration loading or validation."""


def classify_error(error: BaseException) -> BaseException:
    """
    Maps low-level transport errors onto the application's error taxonomy.

    Application errors are returned unchanged; anything unrecognised is
    returned as-is and treated as retryable by the queue.
    """
    if isinstance(error, F1tvDlError):
        return error
    if isinstance(error, aiohttp.ClientResponseError):
        if error.status == 429:
            return RateLimitedError(f"Rate limited: {error.message}")
        return TransientTransportError(f"HTTP {error.status}: {error.message}")
    if isinstance(error, (aiohttp.ClientError, asyncio.TimeoutError)):
        return TransientTransportError(str(error) or type(error).__name__)
    return error


def is_retryable(error: BaseException) -> bool:
    """Returns True if a job that failed with this error may be attempted again."""
    return getattr(error, "retryable", True)
