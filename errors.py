"""
Error taxonomy shared by the analysis flow, rating, and admin dashboard
"""

from typing import Optional


class ContxtraError(Exception):
    """Base exception for Contxtra errors."""
    pass


class ConfigurationError(ContxtraError):
    """Required configuration (credentials, endpoints) is missing."""
    pass


class ValidationError(ContxtraError):
    """Submitted input was rejected locally before any network call."""
    pass


class QuotaExhausted(ContxtraError):
    """The anonymous trial has no uses left."""
    pass


class QuotaCheckFailed(ContxtraError):
    """The trial quota could not be read or tracked (IP lookup or RPC failure)."""
    pass


class TransportError(ContxtraError):
    """Network failure, non-2xx response, or malformed response body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SubmissionInProgress(ContxtraError):
    """A submission was attempted while another one is still running."""
    pass


class AuthorizationError(ContxtraError):
    """The caller is not allowed to perform the requested action."""
    pass


class RatingError(AuthorizationError):
    """Rating rejected: anonymous caller, already rated, or no current result."""
    pass


class AccessDenied(AuthorizationError):
    """Admin view requested without admin privileges."""
    pass
