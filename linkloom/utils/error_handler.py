"""
Exception Hierarchy for LinkLoom

All custom exceptions raised by the linkloom package are defined here so
callers can catch ``LinkLoomError`` to handle anything the package raises.

Unit-level failures (a single probe or a single categorization batch) are
never raised past the scheduler; they are recorded as ``Failure`` outcomes.
Only configuration and input errors propagate to the caller.
"""


class LinkLoomError(Exception):
    """Base exception for all linkloom errors."""

    pass


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(LinkLoomError):
    """Invalid configuration: concurrency limit, chunk size, config file."""

    pass


# ============================================================================
# Categorization Errors
# ============================================================================


class CategorizationError(LinkLoomError):
    """A categorizer backend could not produce a grouping for a batch."""

    pass


# ============================================================================
# API Errors
# ============================================================================


class APIClientError(LinkLoomError):
    """API client errors."""

    pass


class RateLimitError(APIClientError):
    """Rate limit exceeded errors."""

    pass


class AuthenticationError(APIClientError):
    """Authentication/authorization errors."""

    pass


class ServiceUnavailableError(APIClientError):
    """Service unavailable errors."""

    pass


# ============================================================================
# Data Errors
# ============================================================================


class DataError(LinkLoomError):
    """Base class for data-related errors."""

    pass


class BookmarkImportError(DataError):
    """Bookmark input file cannot be read or has no url column."""

    pass


__all__ = [
    "LinkLoomError",
    "ConfigurationError",
    "CategorizationError",
    "APIClientError",
    "RateLimitError",
    "AuthenticationError",
    "ServiceUnavailableError",
    "DataError",
    "BookmarkImportError",
]
