"""
Error Taxonomy

Every error raised by the tracker derives from SerpTrackError and carries an
optional HTTP-style status code so an HTTP layer can map it directly.
"""

from typing import Any, Dict, List, Optional, Tuple


class SerpTrackError(Exception):
    """Base class for tracker errors."""

    status_code: Optional[int] = None

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


# =============================================================================
# INPUT ERRORS - reported to the caller, never retried
# =============================================================================

class InvalidInputError(SerpTrackError):
    """Bad country code, device or query."""
    status_code = 400


class BrandNotFoundError(SerpTrackError):
    """Brand id does not resolve to an active brand."""
    status_code = 404


class NoActiveKeysError(SerpTrackError):
    """The active API key list is empty."""
    status_code = 400


class InvalidDomainError(SerpTrackError):
    """Raw domain string cannot be normalized to a host."""
    status_code = 400


class DomainConflictError(SerpTrackError):
    """An active domain with the same host and path prefix already exists."""
    status_code = 409


class AlreadyRunningError(SerpTrackError):
    """A sweep is already in progress."""
    status_code = 409


# =============================================================================
# PROVIDER ERRORS
# =============================================================================

class SearchProviderError(SerpTrackError):
    """Search provider request failed (HTTP error, timeout, transport)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
    ):
        super().__init__(message, status_code=status_code)
        self.headers = headers or {}
        self.body = body


class AllKeysFailedError(SerpTrackError):
    """Every candidate API key failed for one request."""

    def __init__(self, last_error: BaseException, attempts: List[Tuple[str, str]]):
        super().__init__(
            f"all API keys failed: {last_error}",
            status_code=getattr(last_error, "status_code", None) or 502,
        )
        self.last_error = last_error
        self.attempts = attempts
